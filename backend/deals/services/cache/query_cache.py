"""
Catalog result cache.

Key format: `products:{category|all}:{kind}:{query_hash}`
- category: catalog id of the query's category filter, or "all"
- kind: "list" (browse), "search" (free-text query) or "top" (top-ranked)
- query_hash: SHA-256 of the canonical JSON of the normalized query

TTL: listing pages 30 minutes, search pages 15 minutes.
Invalidation: creating or updating a product drops `products:all:*` and
`products:{category}:*`, which covers every page/sort combination in scope.
"""
import json
from typing import Any, Awaitable, Callable, Dict, Optional

from deals.core.cache import CacheClient, get_cache_client, hash_query
from deals.core.catalog import ALL_CATEGORIES, normalize_category
from deals.core.config import get_settings
from deals.core.logging import get_logger
from deals.models.query import ProductQuery

logger = get_logger(__name__)

KEY_PREFIX = "products"


def _scope(category: Optional[str]) -> str:
    return normalize_category(category) or ALL_CATEGORIES


def canonical_query(query: ProductQuery) -> str:
    """Stable text form of a query: same logical query, same string."""
    return json.dumps(query.cache_payload(), sort_keys=True, separators=(",", ":"))


def generate_products_cache_key(query: ProductQuery) -> str:
    """Cache key for one page of catalog results."""
    kind = "search" if query.search else "list"
    return f"{KEY_PREFIX}:{_scope(query.category)}:{kind}:{hash_query(canonical_query(query))}"


def generate_top_ranked_cache_key(limit: int, category: Optional[str] = None) -> str:
    return f"{KEY_PREFIX}:{_scope(category)}:top:{limit}"


def ttl_for_query(query: ProductQuery) -> int:
    settings = get_settings()
    return settings.search_cache_ttl if query.search else settings.products_cache_ttl


def cache_type_for_query(query: ProductQuery) -> str:
    return "search" if query.search else "products"


async def get_or_compute_products_page(
    query: ProductQuery,
    compute_fn: Callable[[], Awaitable[Dict[str, Any]]],
    cache: Optional[CacheClient] = None,
) -> Dict[str, Any]:
    """
    Serve a serialized ProductPage from cache or compute and store it.

    Returns:
        The page as a JSON-ready dict
    """
    cache = cache or get_cache_client()
    key = generate_products_cache_key(query)
    return await cache.get_or_compute(
        key,
        compute_fn,
        ttl=ttl_for_query(query),
        cache_type=cache_type_for_query(query),
    )


async def get_cached_products_page(
    query: ProductQuery,
    cache: Optional[CacheClient] = None,
) -> Optional[Dict[str, Any]]:
    cache = cache or get_cache_client()
    return await cache.get(generate_products_cache_key(query))


async def store_products_page(
    query: ProductQuery,
    data: Dict[str, Any],
    cache: Optional[CacheClient] = None,
) -> bool:
    cache = cache or get_cache_client()
    return await cache.set(generate_products_cache_key(query), data, ttl_for_query(query))


async def drop_cached_products_page(
    query: ProductQuery,
    cache: Optional[CacheClient] = None,
) -> bool:
    """Delete the cached page for exactly this query."""
    cache = cache or get_cache_client()
    return await cache.delete(generate_products_cache_key(query))


async def invalidate_category_cache(
    category: Optional[str] = None,
    cache: Optional[CacheClient] = None,
) -> int:
    """
    Invalidate cached pages for one category scope ("all" when None).

    Returns:
        Number of keys invalidated
    """
    cache = cache or get_cache_client()
    pattern = f"{KEY_PREFIX}:{_scope(category)}:*"
    count = await cache.invalidate(pattern)
    logger.info("cache_invalidated", cache_type="products", pattern=pattern, count=count)
    return count


async def invalidate_product_caches(
    category: Optional[str],
    cache: Optional[CacheClient] = None,
) -> int:
    """
    Invalidate everything a created/updated product can appear in.

    Drops the unscoped ("all") pages and the pages of the product's category.
    """
    cache = cache or get_cache_client()
    count = await invalidate_category_cache(None, cache=cache)
    scoped = normalize_category(category)
    if scoped:
        count += await invalidate_category_cache(scoped, cache=cache)
    return count


async def invalidate_all_product_caches(cache: Optional[CacheClient] = None) -> int:
    cache = cache or get_cache_client()
    pattern = f"{KEY_PREFIX}:*"
    count = await cache.invalidate(pattern)
    logger.info("cache_invalidated", cache_type="products", pattern=pattern, count=count)
    return count
