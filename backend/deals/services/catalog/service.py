"""
Catalog service: the ranking-and-retrieval pipeline behind the product routes.

list_products(query):
    cache lookup -> (miss) repository fetch -> filter -> rank/sort -> paginate
    -> cache write -> ProductPage

Read paths never raise. A failing repository yields an empty page (logged and
not cached); a failing cache is bypassed by the cache client itself, and an
unreadable cache entry is dropped and recomputed. Search analytics are
best-effort.
"""
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from deals.core.cache import CacheClient, get_cache_client
from deals.core.catalog import normalize_category
from deals.core.config import Settings, get_settings
from deals.core.logging import get_logger
from deals.core.usage import UpstreamUsageTracker
from deals.models.product import Product, ProductScore
from deals.models.query import ProductFilter, ProductPage, ProductQuery
from deals.services.cache.query_cache import (
    drop_cached_products_page,
    generate_products_cache_key,
    generate_top_ranked_cache_key,
    get_or_compute_products_page,
    invalidate_product_caches,
    store_products_page,
)
from deals.services.catalog.analytics import SearchAnalyticsRecorder
from deals.services.catalog.normalize import normalize_product_record, validate_new_product_record
from deals.services.catalog.repository import ProductRepository, RepositoryError
from deals.services.filtering import filter_products
from deals.services.ranking.score import rank_products
from deals.services.ranking.sort import sort_products

logger = get_logger(__name__)

QueryInput = Union[ProductQuery, Mapping[str, Any]]


def compute_has_more(item_count: int, limit: int, total: Optional[int], offset: int, strict: bool) -> bool:
    """
    Whether another page is worth requesting.

    The default heuristic says yes whenever the page is full, which is wrong
    for a full last page. In strict mode the authoritative total decides.
    """
    if strict and total is not None:
        return total > offset + limit
    return item_count == limit


def paginate(products: List[Product], query: ProductQuery, strict_has_more: bool = False) -> ProductPage:
    total = len(products)
    items = products[query.offset:query.offset + query.limit]
    return ProductPage(
        items=items,
        page=query.page,
        limit=query.limit,
        total=total,
        has_more=compute_has_more(len(items), query.limit, total, query.offset, strict_has_more),
    )


class CatalogService:
    """Filters, ranks, paginates and caches catalog queries."""

    def __init__(
        self,
        repository: ProductRepository,
        cache: Optional[CacheClient] = None,
        usage_tracker: Optional[UpstreamUsageTracker] = None,
        settings: Optional[Settings] = None,
        search_recorder: Optional[SearchAnalyticsRecorder] = None,
    ):
        self.repository = repository
        self._cache = cache
        self.usage_tracker = usage_tracker
        self.settings = settings or get_settings()
        self.search_recorder = search_recorder

    @property
    def cache(self) -> CacheClient:
        return self._cache if self._cache is not None else get_cache_client()

    @staticmethod
    def coerce_query(query: QueryInput) -> ProductQuery:
        if isinstance(query, ProductQuery):
            return query
        return ProductQuery.model_validate(dict(query))

    async def _fetch_candidates(self, filters: ProductFilter, query: Optional[ProductQuery] = None) -> List[Product]:
        """Whole candidate set for filters (raises RepositoryError)."""
        sort = query.sort if query is not None else ProductQuery().sort
        products, total = await self.repository.query_products(filters=filters, sort=sort)
        if self.usage_tracker is not None:
            self.usage_tracker.record_usage()
        logger.debug("catalog_candidates_fetched", candidates_count=len(products), total=total)
        return products

    async def compute_page(self, query: ProductQuery) -> ProductPage:
        """Run the uncached pipeline for one query."""
        filters = query.to_filter()
        candidates = await self._fetch_candidates(filters, query)
        matched = filter_products(candidates, filters)
        ordered = sort_products(matched, query.sort)
        page = paginate(ordered, query, strict_has_more=self.settings.strict_has_more)
        logger.info(
            "catalog_page_computed",
            sort=query.sort.value,
            page=query.page,
            limit=query.limit,
            candidates_count=len(candidates),
            matched_count=len(matched),
            returned_count=len(page.items),
        )
        return page

    def _empty_page(self, query: ProductQuery) -> ProductPage:
        return ProductPage(items=[], page=query.page, limit=query.limit, total=0, has_more=False)

    async def _page_from_payload(
        self,
        query: ProductQuery,
        data: Any,
        compute: Callable[[], Awaitable[Optional[Dict[str, Any]]]],
    ) -> Optional[ProductPage]:
        """Validate a page payload; an unreadable cache entry is dropped and recomputed."""
        try:
            return ProductPage.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "cache_entry_invalid",
                key=generate_products_cache_key(query),
                error=str(e),
            )

        await drop_cached_products_page(query, cache=self.cache)
        fresh = await compute()
        if fresh is None:
            return None
        await store_products_page(query, fresh, cache=self.cache)
        return ProductPage.model_validate(fresh)

    async def _record_search(self, query: ProductQuery, page: ProductPage, client_ip: Optional[str]) -> None:
        if self.search_recorder is None or not query.search:
            return
        try:
            await self.search_recorder.record_search(
                query.search,
                page.total if page.total is not None else len(page.items),
                ip_address=client_ip,
            )
        except Exception as e:
            logger.warning(
                "search_analytics_failed",
                error=str(e),
                error_type=type(e).__name__,
            )

    async def list_products(self, query: QueryInput, client_ip: Optional[str] = None) -> ProductPage:
        """
        Serve one page of catalog results.

        Free-text searches are also handed to the search recorder, if any.

        Returns:
            ProductPage; `cached` tells whether it came from the cache
        """
        query = self.coerce_query(query)
        computed = False

        async def compute() -> Optional[Dict[str, Any]]:
            nonlocal computed
            computed = True
            try:
                page = await self.compute_page(query)
            except RepositoryError as e:
                logger.error(
                    "catalog_fetch_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    query=query.cache_payload(),
                )
                return None
            return page.model_dump(mode="json", exclude={"cached"})

        try:
            data = await get_or_compute_products_page(query, compute, cache=self.cache)
            page = await self._page_from_payload(query, data, compute) if data is not None else None
        except Exception as e:
            logger.error(
                "catalog_list_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            page = None

        if page is None:
            page = self._empty_page(query)
        else:
            page = page.model_copy(update={"cached": not computed})

        await self._record_search(query, page, client_ip)
        return page

    async def get_top_ranked(self, limit: int = 200, category: Optional[str] = None) -> List[ProductScore]:
        """
        Best-scoring products of the (optionally category-scoped) catalog.

        Scores are normalized against the whole candidate set before the list
        is truncated to limit.
        """
        category = normalize_category(category)
        key = generate_top_ranked_cache_key(limit, category)
        ttl = self.settings.products_cache_ttl

        async def compute() -> Optional[List[Dict[str, Any]]]:
            try:
                candidates = await self._fetch_candidates(ProductFilter(category=category))
            except RepositoryError as e:
                logger.error("catalog_top_ranked_failed", error=str(e), category=category)
                return None
            matched = filter_products(candidates, ProductFilter(category=category))
            ranked = rank_products(matched)[:max(limit, 0)]
            return [item.model_dump(mode="json") for item in ranked]

        try:
            data = await self.cache.get_or_compute(key, compute, ttl=ttl, cache_type="top_ranked")
            try:
                return [ProductScore.model_validate(item) for item in data or []]
            except (ValidationError, TypeError) as e:
                logger.warning("cache_entry_invalid", key=key, error=str(e))

            await self.cache.delete(key)
            data = await compute()
            if data is not None:
                await self.cache.set(key, data, ttl)
            return [ProductScore.model_validate(item) for item in data or []]
        except Exception as e:
            logger.error(
                "catalog_top_ranked_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return []

    async def create_product(self, record: Mapping[str, Any]) -> Tuple[Product, int]:
        """
        Validate, persist and publish a new product.

        Returns:
            (stored product, number of cache keys invalidated)

        Raises:
            ProductValidationError: a required field is missing or the record is not a valid product
            RepositoryError: the store rejected the write
        """
        product = normalize_product_record(validate_new_product_record(record), generate_id=True)
        stored = await self.repository.insert_product(product)
        invalidated = await invalidate_product_caches(stored.category, cache=self.cache)
        logger.info(
            "catalog_product_created",
            product_id=stored.id,
            category=stored.category,
            invalidated_keys=invalidated,
        )
        return stored, invalidated

    async def update_product(self, product_id: str, record: Mapping[str, Any]) -> Tuple[Product, int]:
        """
        Replace a product and invalidate the caches it can appear in.

        Both the new category and (when it changed) the previous one are
        invalidated.
        """
        product = normalize_product_record({**record, "id": product_id})
        previous = await self.repository.get_product(product_id)
        old_category = previous.category if previous is not None else None

        stored = await self.repository.update_product(product)
        invalidated = await invalidate_product_caches(stored.category, cache=self.cache)
        if old_category and normalize_category(old_category) != normalize_category(stored.category):
            invalidated += await invalidate_product_caches(old_category, cache=self.cache)

        logger.info(
            "catalog_product_updated",
            product_id=stored.id,
            category=stored.category,
            invalidated_keys=invalidated,
        )
        return stored, invalidated


# Process-wide service, wired up by the application at startup
_catalog_service: Optional[CatalogService] = None


def initialize_catalog_service(
    repository: ProductRepository,
    cache: Optional[CacheClient] = None,
    usage_tracker: Optional[UpstreamUsageTracker] = None,
    settings: Optional[Settings] = None,
    search_recorder: Optional[SearchAnalyticsRecorder] = None,
) -> CatalogService:
    global _catalog_service
    _catalog_service = CatalogService(
        repository,
        cache=cache,
        usage_tracker=usage_tracker,
        settings=settings,
        search_recorder=search_recorder,
    )
    logger.info("catalog_service_initialized", repository=type(repository).__name__)
    return _catalog_service


def get_catalog_service() -> Optional[CatalogService]:
    return _catalog_service
