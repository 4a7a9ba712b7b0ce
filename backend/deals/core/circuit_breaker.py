"""
Circuit breaker guarding the Redis cache backend.

While the breaker is open, cache calls are rejected without touching the
network so a dead Redis costs nothing per request; the cache client treats a
rejection exactly like a miss.

- Opens when the error rate over the sliding window reaches failure_threshold
  (once at least min_requests_for_threshold calls were observed).
- After open_duration_seconds it goes half-open and lets one trial call through.
- A successful trial call closes it; a failed one re-opens it.
"""
import time
from collections import deque
from enum import Enum
from threading import Lock
from typing import Awaitable, Callable, Deque, Optional, Tuple, TypeVar

from deals.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when a call is rejected because the breaker is open."""
    pass


class CircuitBreaker:
    """Error-rate circuit breaker for async callables."""

    def __init__(
        self,
        name: str,
        failure_threshold: float = 0.5,
        time_window_seconds: int = 60,
        open_duration_seconds: int = 30,
        min_requests_for_threshold: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.time_window_seconds = time_window_seconds
        self.open_duration_seconds = open_duration_seconds
        self.min_requests_for_threshold = min_requests_for_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._lock = Lock()
        self._history: Deque[Tuple[float, bool]] = deque()
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh(self._clock())
            return self._state

    def _refresh(self, now: float) -> None:
        cutoff = now - self.time_window_seconds
        while self._history and self._history[0][0] < cutoff:
            self._history.popleft()

        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and now - self._opened_at >= self.open_duration_seconds
        ):
            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = False
            logger.info("circuit_breaker_half_open", circuit_breaker=self.name)

    def _error_rate(self) -> float:
        if not self._history:
            return 0.0
        failures = sum(1 for _, ok in self._history if not ok)
        return failures / len(self._history)

    def _open(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._trial_in_flight = False
        self._history.clear()

    def _before_call(self) -> None:
        with self._lock:
            self._refresh(self._clock())
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerOpenError(
                    f"Circuit breaker {self.name} is OPEN"
                )
            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitBreakerOpenError(
                        f"Circuit breaker {self.name} is HALF_OPEN with a trial call in flight"
                    )
                self._trial_in_flight = True

    def _after_call(self, success: bool) -> None:
        with self._lock:
            now = self._clock()
            if self._state == CircuitState.HALF_OPEN:
                if success:
                    self._state = CircuitState.CLOSED
                    self._opened_at = None
                    self._trial_in_flight = False
                    logger.info("circuit_breaker_closed", circuit_breaker=self.name)
                else:
                    self._open(now)
                    logger.warning("circuit_breaker_reopened", circuit_breaker=self.name)
                return

            self._history.append((now, success))
            self._refresh(now)
            if len(self._history) >= self.min_requests_for_threshold:
                error_rate = self._error_rate()
                if error_rate >= self.failure_threshold:
                    total = len(self._history)
                    self._open(now)
                    logger.warning(
                        "circuit_breaker_opened",
                        circuit_breaker=self.name,
                        error_rate=error_rate,
                        total=total,
                    )

    def _release_slot(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False

    async def call_async(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Await func(*args, **kwargs) under breaker protection.

        Raises:
            CircuitBreakerOpenError: if the breaker rejects the call
        """
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._after_call(False)
            raise
        except BaseException:
            # Cancelled or interrupted: no outcome to record, but free the slot
            self._release_slot()
            raise
        self._after_call(True)
        return result

    def get_metrics(self) -> dict:
        """Breaker snapshot for health endpoints."""
        with self._lock:
            self._refresh(self._clock())
            return {
                "name": self.name,
                "state": self._state.value,
                "recent_requests": len(self._history),
                "error_rate": self._error_rate(),
                "opened_at": self._opened_at,
            }
