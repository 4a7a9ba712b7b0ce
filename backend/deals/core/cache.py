"""
Redis cache client with circuit breaker protection.

Implements the cache-aside pattern used by the catalog:
1. Check cache
2. On miss, run the expensive computation (fetch + filter + rank + paginate)
3. Store the result with a TTL
4. Return it

The cache is never allowed to fail a request: read errors behave as misses and
write errors are logged and swallowed. Two concurrent misses on the same key
both compute and both write; the results are identical so the last write wins.
"""
import hashlib
import json
from typing import Any, Awaitable, Callable, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from deals.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from deals.core.config import get_settings
from deals.core.logging import get_logger
from deals.core.metrics import record_cache_error, record_cache_hit, record_cache_miss

logger = get_logger(__name__)

# Process-wide Redis client and breaker, set up by initialize_redis()
_redis_client: Optional[Redis] = None
_cache_circuit_breaker: Optional[CircuitBreaker] = None

DELETE_BATCH_SIZE = 500


async def initialize_redis(redis_url: Optional[str] = None) -> bool:
    """
    Create the Redis client and verify connectivity.

    Returns:
        True if Redis is reachable, False otherwise (caching disabled)
    """
    global _redis_client, _cache_circuit_breaker

    settings = get_settings()
    if not settings.cache_enabled:
        logger.info("redis_disabled")
        return False

    url = redis_url or settings.redis_url
    try:
        logger.info("redis_initializing", url=url)
        client = Redis.from_url(
            url,
            max_connections=20,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            decode_responses=True,
        )
        await client.ping()

        _redis_client = client
        _cache_circuit_breaker = CircuitBreaker(
            name="redis_cache",
            failure_threshold=0.5,
            time_window_seconds=60,
            open_duration_seconds=30,
        )
        logger.info("redis_initialized")
        return True

    except Exception as e:
        logger.error(
            "redis_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        _redis_client = None
        return False


async def close_redis() -> None:
    """Close the Redis client."""
    global _redis_client

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("redis_closed")
        except Exception as e:
            logger.error("redis_close_failed", error=str(e), exc_info=True)
        finally:
            _redis_client = None


def get_redis_client() -> Optional[Redis]:
    return _redis_client


class CacheClient:
    """
    Key-value cache over Redis.

    A client built without an explicit redis_client uses the process-wide
    connection created by initialize_redis(); when there is none, every read is
    a miss and every write is a no-op.
    """

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        default_ttl: Optional[int] = None,
    ):
        self._redis_client = redis_client
        self.circuit_breaker = circuit_breaker if circuit_breaker is not None else _cache_circuit_breaker
        self.default_ttl = default_ttl if default_ttl is not None else get_settings().default_cache_ttl

    @property
    def client(self) -> Optional[Redis]:
        if self._redis_client is not None:
            return self._redis_client
        return _redis_client

    def is_available(self) -> bool:
        if self.client is None:
            return False
        if self.circuit_breaker is not None:
            return self.circuit_breaker.state.value != "open"
        return True

    async def _execute(self, func: Callable[..., Awaitable[Any]], *args) -> Any:
        if self.circuit_breaker is not None:
            return await self.circuit_breaker.call_async(func, *args)
        return await func(*args)

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Returns:
            Decoded value if found, None on miss or any error
        """
        client = self.client
        if client is None:
            return None

        try:
            value = await self._execute(client.get, key)
        except CircuitBreakerOpenError:
            logger.debug("cache_circuit_breaker_open", key=key)
            return None
        except RedisError as e:
            record_cache_error("get")
            logger.warning(
                "cache_get_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        except Exception as e:
            record_cache_error("get")
            logger.error(
                "cache_get_unexpected_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return None

        if value is None:
            return None

        try:
            return json.loads(value)
        except (TypeError, json.JSONDecodeError):
            return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache with TTL (JSON-serialized unless already a string).

        Returns:
            True if stored, False otherwise
        """
        client = self.client
        if client is None:
            return False

        ttl = ttl if ttl and ttl > 0 else self.default_ttl

        try:
            serialized = value if isinstance(value, str) else json.dumps(value)
            await self._execute(client.setex, key, ttl, serialized)
            return True

        except CircuitBreakerOpenError:
            logger.debug("cache_circuit_breaker_open", key=key)
            return False
        except RedisError as e:
            record_cache_error("set")
            logger.warning(
                "cache_set_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        except Exception as e:
            record_cache_error("set")
            logger.error(
                "cache_set_unexpected_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return False

    async def invalidate(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern (e.g. 'products:electronics:*').

        Returns:
            Number of keys deleted
        """
        client = self.client
        if client is None:
            return 0
        # SCAN is not a single breaker-guarded call, so skip it while open
        if not self.is_available():
            logger.debug("cache_circuit_breaker_open", pattern=pattern)
            return 0

        try:
            deleted = 0
            batch = []
            async for key in client.scan_iter(match=pattern, count=DELETE_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= DELETE_BATCH_SIZE:
                    deleted += await self._execute(client.delete, *batch)
                    batch = []
            if batch:
                deleted += await self._execute(client.delete, *batch)
            return deleted

        except CircuitBreakerOpenError:
            logger.debug("cache_circuit_breaker_open", pattern=pattern)
            return 0
        except RedisError as e:
            record_cache_error("delete")
            logger.warning(
                "cache_delete_error",
                pattern=pattern,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0
        except Exception as e:
            record_cache_error("delete")
            logger.error(
                "cache_delete_unexpected_error",
                pattern=pattern,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return 0

    async def delete(self, key: str) -> bool:
        """
        Delete one exact key.

        Returns:
            True if the key existed and was removed
        """
        client = self.client
        if client is None:
            return False
        try:
            return bool(await self._execute(client.delete, key))
        except CircuitBreakerOpenError:
            logger.debug("cache_circuit_breaker_open", key=key)
            return False
        except RedisError as e:
            record_cache_error("delete")
            logger.warning(
                "cache_delete_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def exists(self, key: str) -> bool:
        client = self.client
        if client is None:
            return False
        try:
            return bool(await self._execute(client.exists, key))
        except (CircuitBreakerOpenError, RedisError):
            return False

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
        cache_type: str = "generic",
    ) -> Any:
        """
        Serve key from cache, or compute, store and return it.

        compute_fn must return a JSON-serializable value. None results are
        returned but not cached. Errors raised by compute_fn propagate.
        """
        cached = await self.get(key)
        if cached is not None:
            record_cache_hit(cache_type)
            logger.debug("cache_hit", cache_type=cache_type, key=key)
            return cached

        record_cache_miss(cache_type)
        logger.debug("cache_miss", cache_type=cache_type, key=key)

        value = await compute_fn()
        if value is not None:
            stored = await self.set(key, value, ttl)
            if stored:
                logger.debug("cache_set", cache_type=cache_type, key=key, ttl=ttl)
        return value

    def get_circuit_breaker_metrics(self) -> Optional[Dict]:
        if self.circuit_breaker is not None:
            return self.circuit_breaker.get_metrics()
        return None


_cache_client: Optional[CacheClient] = None


def get_cache_client() -> CacheClient:
    """Get the process-wide cache client."""
    global _cache_client
    if _cache_client is None:
        _cache_client = CacheClient()
    return _cache_client


def reset_cache_client() -> None:
    """Drop the process-wide client so the next call picks up a new breaker."""
    global _cache_client
    _cache_client = None


def hash_query(payload: str) -> str:
    """SHA-256 digest of a canonical query string (for cache keys)."""
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
