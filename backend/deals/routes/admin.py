"""
Admin endpoints.

GET  /admin/api-usage
POST /admin/cache/invalidate
"""
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from deals.core.catalog import normalize_category
from deals.core.logging import get_logger
from deals.models.responses import ApiUsageResult, CacheInvalidationResult
from deals.services.cache.query_cache import (
    KEY_PREFIX,
    invalidate_all_product_caches,
    invalidate_category_cache,
)
from deals.services.catalog import get_catalog_service

logger = get_logger(__name__)

router = APIRouter()


class CacheInvalidationRequest(BaseModel):
    """Category scope to invalidate; omit to drop every catalog page."""
    category: Optional[str] = None


@router.get("/api-usage", response_model=ApiUsageResult)
async def api_usage():
    """Upstream request quota as seen by the catalog service."""
    service = get_catalog_service()
    if service is None or service.usage_tracker is None:
        raise HTTPException(status_code=503, detail="Usage tracking not available")

    usage = service.usage_tracker.get_usage()
    return ApiUsageResult(used=usage.used, remaining=usage.remaining, limit=usage.limit)


@router.post("/cache/invalidate", response_model=CacheInvalidationResult)
async def invalidate_cache(request: Optional[CacheInvalidationRequest] = None):
    """
    Drop cached catalog pages.

    Security: Should require admin authentication in production.
    """
    if request is None or request.category is None:
        deleted = await invalidate_all_product_caches()
        pattern = f"{KEY_PREFIX}:*"
    else:
        category = normalize_category(request.category)
        if category is None:
            raise HTTPException(status_code=400, detail=f"Unknown category: {request.category}")
        deleted = await invalidate_category_cache(category)
        pattern = f"{KEY_PREFIX}:{category}:*"

    logger.info("admin_cache_invalidated", pattern=pattern, deleted=deleted)
    return CacheInvalidationResult(pattern=pattern, deleted=deleted)
