"""
Unit tests for the circuit breaker guarding the cache.
"""
import asyncio

import pytest

from deals.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


async def succeed():
    return "success"


async def fail():
    raise RuntimeError("backend down")


async def trip(cb, failures):
    for _ in range(failures):
        with pytest.raises(RuntimeError):
            await cb.call_async(fail)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(
        "test",
        failure_threshold=0.5,
        time_window_seconds=60,
        open_duration_seconds=30,
        min_requests_for_threshold=4,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_closed_state_passes_calls_through(breaker):
    assert breaker.state == CircuitState.CLOSED
    assert await breaker.call_async(succeed) == "success"


@pytest.mark.asyncio
async def test_stays_closed_below_min_requests(breaker):
    await trip(breaker, 3)
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_stays_closed_below_threshold(breaker):
    for _ in range(3):
        await breaker.call_async(succeed)
    await trip(breaker, 1)
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_opens_at_threshold_and_rejects(breaker):
    await breaker.call_async(succeed)
    await breaker.call_async(succeed)
    await trip(breaker, 2)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerOpenError):
        await breaker.call_async(succeed)


@pytest.mark.asyncio
async def test_old_failures_leave_the_window(breaker, clock):
    await trip(breaker, 3)
    clock.advance(61)
    await breaker.call_async(succeed)
    assert breaker.state == CircuitState.CLOSED
    assert breaker.get_metrics()["recent_requests"] == 1


@pytest.mark.asyncio
async def test_half_open_trial_success_closes(breaker, clock):
    await trip(breaker, 4)
    clock.advance(30)

    assert breaker.state == CircuitState.HALF_OPEN
    assert await breaker.call_async(succeed) == "success"
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_trial_failure_reopens(breaker, clock):
    await trip(breaker, 4)
    clock.advance(30)

    await trip(breaker, 1)
    assert breaker.state == CircuitState.OPEN

    clock.advance(29)
    with pytest.raises(CircuitBreakerOpenError):
        await breaker.call_async(succeed)


@pytest.mark.asyncio
async def test_cancelled_half_open_call_frees_the_slot(breaker, clock):
    await trip(breaker, 4)
    clock.advance(30)

    started = asyncio.Event()

    async def hang():
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(breaker.call_async(hang))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert breaker.state == CircuitState.HALF_OPEN
    assert await breaker.call_async(succeed) == "success"
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_cancelled_closed_call_is_not_counted(breaker):
    async def hang():
        await asyncio.Event().wait()

    task = asyncio.create_task(breaker.call_async(hang))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert breaker.get_metrics()["recent_requests"] == 0


@pytest.mark.asyncio
async def test_metrics_snapshot(breaker):
    await breaker.call_async(succeed)
    await trip(breaker, 1)

    metrics = breaker.get_metrics()
    assert metrics["name"] == "test"
    assert metrics["state"] == "closed"
    assert metrics["recent_requests"] == 2
    assert metrics["error_rate"] == pytest.approx(0.5)
