"""
Tests for the catalog pipeline: fetch -> filter -> rank/sort -> paginate -> cache.
"""
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from deals.core.cache import CacheClient
from deals.core.config import get_settings
from deals.core.usage import UpstreamUsageTracker
from deals.models.query import ProductQuery
from deals.services.cache.query_cache import generate_products_cache_key, generate_top_ranked_cache_key
from deals.services.catalog import (
    CatalogService,
    InMemoryProductRepository,
    InMemorySearchAnalytics,
    ProductNotFoundError,
    ProductValidationError,
    RepositoryError,
)
from deals.services.catalog.service import compute_has_more, paginate
from deals.services.ranking import sort_products
from tests.conftest import make_product


NEW_PRODUCT = {
    "title": "Smart Watch Pro",
    "price": 199.99,
    "affiliate_url": "https://example.com/watch",
    "store": "Best Buy",
    "category": "electronics",
}


def ids(products):
    return [p.id for p in products]


def numbered_products(n, **overrides):
    return [make_product(id=f"p{i:03d}", price=10 + i, **overrides) for i in range(n)]


@pytest.fixture
def repository(sample_products):
    return InMemoryProductRepository(sample_products)


@pytest.fixture
def tracker():
    return UpstreamUsageTracker(limit=100)


@pytest.fixture
def service(repository, cache, tracker):
    return CatalogService(repository, cache=cache, usage_tracker=tracker)


@pytest.fixture
def uncached_service(repository, tracker):
    return CatalogService(repository, cache=CacheClient(default_ttl=60), usage_tracker=tracker)


class TestPagination:

    def test_last_partial_page(self):
        products = numbered_products(45)
        page = paginate(products, ProductQuery(page=3, limit=20))

        assert len(page.items) == 5
        assert page.total == 45
        assert page.has_more is False
        assert ids(page.items) == ids(products[40:45])

    def test_full_page_reports_more(self):
        page = paginate(numbered_products(45), ProductQuery(page=2, limit=20))
        assert len(page.items) == 20
        assert page.has_more is True

    def test_full_last_page_heuristic_vs_strict(self):
        products = numbered_products(40)
        query = ProductQuery(page=2, limit=20)

        assert paginate(products, query).has_more is True
        assert paginate(products, query, strict_has_more=True).has_more is False

    def test_page_past_the_end_is_empty(self):
        page = paginate(numbered_products(5), ProductQuery(page=4, limit=20))
        assert page.items == []
        assert page.has_more is False

    def test_compute_has_more_without_total_uses_heuristic(self):
        assert compute_has_more(20, 20, None, 0, strict=True) is True
        assert compute_has_more(7, 20, None, 0, strict=True) is False


class TestListProducts:

    @pytest.mark.asyncio
    async def test_page_three_of_forty_five(self, cache, tracker):
        service = CatalogService(InMemoryProductRepository(numbered_products(45)), cache=cache, usage_tracker=tracker)

        page = await service.list_products({"page": 3, "limit": 20, "sort": "price-low"})

        assert len(page.items) == 5
        assert page.has_more is False
        assert page.total == 45
        assert ids(page.items) == [f"p{i:03d}" for i in range(40, 45)]

    @pytest.mark.asyncio
    async def test_relevance_is_default(self, service, sample_products):
        page = await service.list_products(ProductQuery())
        assert ids(page.items) == ids(sort_products(sample_products, "relevance"))

    @pytest.mark.asyncio
    async def test_filters_and_sort(self, service):
        page = await service.list_products({"category": "electronics", "sort": "price-high"})
        assert ids(page.items) == ["laptop", "headphones"]

    @pytest.mark.asyncio
    async def test_min_discount_with_no_match_returns_empty_page(self, cache):
        products = [make_product(price=90, original_price=100), make_product(price=20)]
        service = CatalogService(InMemoryProductRepository(products), cache=cache)

        page = await service.list_products({"min_discount": 25})

        assert page.items == []
        assert page.total == 0
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, service, tracker):
        first = await service.list_products({"category": "electronics"})
        second = await service.list_products({"category": "electronics"})

        assert first.cached is False
        assert second.cached is True
        assert ids(first.items) == ids(second.items)
        assert first.items == second.items
        assert tracker.get_usage().used == 1

    @pytest.mark.asyncio
    async def test_without_redis_every_call_computes(self, uncached_service, tracker):
        first = await uncached_service.list_products({})
        second = await uncached_service.list_products({})

        assert first.cached is False and second.cached is False
        assert ids(first.items) == ids(second.items)
        assert tracker.get_usage().used == 2

    @pytest.mark.asyncio
    async def test_repository_failure_yields_empty_uncached_page(self, cache):
        repository = InMemoryProductRepository()
        repository.query_products = AsyncMock(side_effect=RepositoryError("supabase down"))
        service = CatalogService(repository, cache=cache)

        page = await service.list_products({"page": 2})

        assert page.items == []
        assert page.page == 2
        assert page.has_more is False

        repository.query_products = AsyncMock(return_value=([make_product(id="back")], 1))
        recovered = await service.list_products({"page": 1})
        assert ids(recovered.items) == ["back"]

    @pytest.mark.asyncio
    async def test_strict_has_more_setting(self, cache):
        settings = replace(get_settings(), strict_has_more=True)
        service = CatalogService(InMemoryProductRepository(numbered_products(40)), cache=cache, settings=settings)

        page = await service.list_products({"page": 2, "limit": 20})

        assert len(page.items) == 20
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_unreadable_cache_entry_is_dropped_and_recomputed(self, service, fake_redis, sample_products, tracker):
        key = generate_products_cache_key(ProductQuery())
        await fake_redis.set(key, "not-json-garbage")

        page = await service.list_products(ProductQuery())

        assert page.cached is False
        assert ids(page.items) == ids(sort_products(sample_products, "relevance"))
        assert tracker.get_usage().used == 1
        assert (await service.list_products(ProductQuery())).cached is True

    @pytest.mark.asyncio
    async def test_cache_entry_with_wrong_shape_is_recomputed(self, service, fake_redis):
        query = ProductQuery(category="electronics")
        await fake_redis.set(generate_products_cache_key(query), '{"items": "nope", "page": "x"}')

        page = await service.list_products(query)

        assert page.cached is False
        assert set(ids(page.items)) == {"headphones", "laptop"}


class TestTopRanked:

    @pytest.mark.asyncio
    async def test_top_ranked_is_cached_and_ordered(self, service, tracker):
        first = await service.get_top_ranked(limit=3)
        second = await service.get_top_ranked(limit=3)

        assert len(first) == 3
        assert [item.score for item in first] == sorted((item.score for item in first), reverse=True)
        assert [item.product.id for item in second] == [item.product.id for item in first]
        assert tracker.get_usage().used == 1

    @pytest.mark.asyncio
    async def test_top_ranked_by_category(self, service):
        ranked = await service.get_top_ranked(limit=10, category="electronics")
        assert {item.product.id for item in ranked} == {"headphones", "laptop"}

    @pytest.mark.asyncio
    async def test_top_ranked_repository_failure(self, cache):
        repository = InMemoryProductRepository()
        repository.query_products = AsyncMock(side_effect=RepositoryError("down"))
        service = CatalogService(repository, cache=cache)

        assert await service.get_top_ranked() == []

    @pytest.mark.asyncio
    async def test_top_ranked_unreadable_cache_entry_is_recomputed(self, service, fake_redis):
        await fake_redis.set(generate_top_ranked_cache_key(3), "garbage")

        ranked = await service.get_top_ranked(limit=3)

        assert len(ranked) == 3
        assert [item.product.id for item in await service.get_top_ranked(limit=3)] == [
            item.product.id for item in ranked
        ]


class TestSearchAnalytics:

    @pytest.mark.asyncio
    async def test_searches_are_recorded(self, repository, cache):
        recorder = InMemorySearchAnalytics()
        service = CatalogService(repository, cache=cache, search_recorder=recorder)

        page = await service.list_products({"search": "tent"}, client_ip="203.0.113.7")
        await service.list_products({"category": "fashion"})

        assert len(recorder.events) == 1
        event = recorder.events[0]
        assert event["query"] == "tent"
        assert event["results_count"] == page.total == 1
        assert event["ip_address"] == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_cached_searches_are_recorded_too(self, repository, cache):
        recorder = InMemorySearchAnalytics()
        service = CatalogService(repository, cache=cache, search_recorder=recorder)

        await service.list_products({"search": "tent"})
        second = await service.list_products({"search": "tent"})

        assert second.cached is True
        assert len(recorder.events) == 2

    @pytest.mark.asyncio
    async def test_failing_recorder_still_returns_the_page(self, repository, cache):
        recorder = AsyncMock()
        recorder.record_search.side_effect = RepositoryError("search_analytics down")
        service = CatalogService(repository, cache=cache, search_recorder=recorder)

        page = await service.list_products({"search": "tent"})

        assert ids(page.items) == ["tent"]
        recorder.record_search.assert_awaited_once()
        assert recorder.record_search.await_args.args[0] == "tent"


class TestWrites:

    @pytest.mark.asyncio
    async def test_create_product_invalidates_cached_pages(self, service):
        before = await service.list_products({"category": "electronics"})
        fashion = await service.list_products({"category": "fashion"})
        assert fashion.cached is False

        product, invalidated = await service.create_product({
            "title": "Smart Watch Pro",
            "price": "$199.99",
            "originalPrice": 249.99,
            "category": "electronics",
            "store": "Best Buy",
            "affiliate_url": "https://example.com/watch",
        })

        assert product.id
        assert product.price == pytest.approx(199.99)
        assert invalidated == 1

        after = await service.list_products({"category": "electronics"})
        assert after.cached is False
        assert len(after.items) == len(before.items) + 1
        assert product.id in ids(after.items)

        assert (await service.list_products({"category": "fashion"})).cached is True

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_record(self, service):
        with pytest.raises(ProductValidationError):
            await service.create_product({"price": 10})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["title", "price", "affiliate_url", "store", "category"])
    async def test_create_requires_each_field(self, service, field):
        record = dict(NEW_PRODUCT)
        del record[field]

        with pytest.raises(ProductValidationError, match=field):
            await service.create_product(record)

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_category(self, service):
        with pytest.raises(ProductValidationError, match="category"):
            await service.create_product({**NEW_PRODUCT, "category": "groceries"})

    @pytest.mark.asyncio
    async def test_create_rejects_zero_price(self, service):
        with pytest.raises(ProductValidationError, match="price"):
            await service.create_product({**NEW_PRODUCT, "price": 0})

    @pytest.mark.asyncio
    async def test_create_pins_category_id(self, service):
        product, _ = await service.create_product({**NEW_PRODUCT, "category": " Electronics "})
        assert product.category == "electronics"

    @pytest.mark.asyncio
    async def test_create_duplicate_id_is_repository_error(self, service):
        with pytest.raises(RepositoryError):
            await service.create_product({**NEW_PRODUCT, "id": "laptop"})

    @pytest.mark.asyncio
    async def test_update_moving_category_invalidates_both(self, service):
        await service.list_products({"category": "fashion"})
        await service.list_products({"category": "electronics"})

        product, invalidated = await service.update_product(
            "jeans",
            {"title": "Denim Jeans", "price": 29.5, "category": "electronics"},
        )

        assert product.category == "electronics"
        assert invalidated == 2
        fashion = await service.list_products({"category": "fashion"})
        assert fashion.cached is False
        assert fashion.items == []

    @pytest.mark.asyncio
    async def test_update_missing_product(self, service):
        with pytest.raises(ProductNotFoundError):
            await service.update_product("nope", {"title": "Ghost", "price": 1})
