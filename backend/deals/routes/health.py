"""
Health check endpoints.
"""
from fastapi import APIRouter

from deals.core.cache import get_cache_client
from deals.services.catalog import get_catalog_service

router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.

    The API stays up without Redis (requests are served uncached), so a
    missing cache is reported as "degraded", not as a failure.
    """
    cache_available = get_cache_client().is_available()
    return {
        "status": "ok" if cache_available else "degraded",
        "message": "API is running",
        "cache_available": cache_available,
        "catalog_ready": get_catalog_service() is not None,
    }


@router.get("/cache")
async def cache_health():
    """
    Cache health including the Redis circuit breaker state.
    """
    cache = get_cache_client()
    available = cache.is_available()
    return {
        "status": "ok" if available else "unavailable",
        "available": available,
        "circuit_breaker": cache.get_circuit_breaker_metrics(),
    }
