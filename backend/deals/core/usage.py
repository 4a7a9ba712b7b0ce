"""
Upstream request quota tracking.

The tracker is owned by whoever wires the application together and handed to
the components that spend quota; nothing reads a module-level counter.
"""
from dataclasses import dataclass
from threading import Lock

from deals.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ApiUsage:
    used: int
    remaining: int
    limit: int


class UpstreamUsageTracker:
    """Counts upstream (repository / third-party) requests against a limit."""

    def __init__(self, limit: int = 100, name: str = "catalog_upstream"):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.name = name
        self.limit = limit
        self._used = 0
        self._lock = Lock()

    def record_usage(self, count: int = 1) -> ApiUsage:
        """Record `count` upstream requests and return the updated usage."""
        with self._lock:
            self._used += count
            usage = self._snapshot()

        if usage.used >= self.limit:
            logger.warning(
                "upstream_usage_limit_reached",
                tracker=self.name,
                used=usage.used,
                limit=self.limit,
            )
        return usage

    def get_usage(self) -> ApiUsage:
        with self._lock:
            return self._snapshot()

    def reset(self) -> None:
        with self._lock:
            self._used = 0
        logger.info("upstream_usage_reset", tracker=self.name)

    def _snapshot(self) -> ApiUsage:
        return ApiUsage(
            used=self._used,
            remaining=max(0, self.limit - self._used),
            limit=self.limit,
        )
