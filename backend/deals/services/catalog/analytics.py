"""
Search analytics: one row per free-text catalog search.

Rows land in the Supabase `search_analytics` table:
    {query, results_count, user_id, ip_address, searched_at}

Recording is best-effort. The catalog service logs and drops any error a
recorder raises, so analytics can never fail a search.
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional

from deals.core.database import get_supabase_client
from deals.core.logging import get_logger
from deals.core.metrics import record_repository_error
from deals.services.catalog.repository import RepositoryError

logger = get_logger(__name__)


def build_search_event(
    query: str,
    results_count: int,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "query": query,
        "results_count": results_count,
        "user_id": user_id,
        "ip_address": ip_address,
        "searched_at": datetime.now(timezone.utc).isoformat(),
    }


class SearchAnalyticsRecorder(ABC):

    @abstractmethod
    async def record_search(
        self,
        query: str,
        results_count: int,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Record one search.

        Raises:
            RepositoryError: if the event could not be stored
        """


class InMemorySearchAnalytics(SearchAnalyticsRecorder):
    """Keeps events in a list; used by tests and local development."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []
        self._lock = Lock()

    async def record_search(self, query, results_count, user_id=None, ip_address=None) -> None:
        event = build_search_event(query, results_count, user_id=user_id, ip_address=ip_address)
        with self._lock:
            self.events.append(event)


class SupabaseSearchAnalytics(SearchAnalyticsRecorder):
    """Appends search events to the Supabase `search_analytics` table."""

    def __init__(self, client: Any = None, table: str = "search_analytics"):
        self._client = client
        self.table = table

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        if self._client is None:
            raise RepositoryError("Supabase client not configured")
        return self._client

    async def record_search(self, query, results_count, user_id=None, ip_address=None) -> None:
        event = build_search_event(query, results_count, user_id=user_id, ip_address=ip_address)
        try:
            request = self.client.table(self.table).insert(event)
            await asyncio.to_thread(request.execute)
        except RepositoryError:
            record_repository_error("search_analytics")
            raise
        except Exception as e:
            record_repository_error("search_analytics")
            raise RepositoryError(f"failed to insert into {self.table}") from e

        logger.debug("search_analytics_recorded", query=query, results_count=results_count)
