"""
Unit tests for the upstream usage tracker.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from deals.core.usage import UpstreamUsageTracker


def test_starts_empty():
    usage = UpstreamUsageTracker(limit=10).get_usage()
    assert (usage.used, usage.remaining, usage.limit) == (0, 10, 10)


def test_record_usage():
    tracker = UpstreamUsageTracker(limit=10)
    tracker.record_usage()
    usage = tracker.record_usage(3)

    assert usage.used == 4
    assert usage.remaining == 6


def test_remaining_never_negative():
    tracker = UpstreamUsageTracker(limit=2)
    tracker.record_usage(5)
    assert tracker.get_usage().remaining == 0


def test_reset():
    tracker = UpstreamUsageTracker(limit=5)
    tracker.record_usage(4)
    tracker.reset()
    assert tracker.get_usage().used == 0


def test_invalid_limit():
    with pytest.raises(ValueError):
        UpstreamUsageTracker(limit=0)


def test_concurrent_recording():
    tracker = UpstreamUsageTracker(limit=1000)
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: tracker.record_usage(), range(400)))
    assert tracker.get_usage().used == 400
