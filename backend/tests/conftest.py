"""
Shared fixtures for the deals backend tests.
"""
from datetime import datetime, timezone
from itertools import count

import fakeredis
import pytest
import pytest_asyncio

from deals.core.cache import CacheClient
from deals.core.circuit_breaker import CircuitBreaker
from deals.models.product import Product

_ids = count(1)


def make_product(**overrides) -> Product:
    """Build a Product with sensible defaults; overrides win."""
    fields = {
        "id": f"prod_{next(_ids)}",
        "title": "Sample Product",
        "description": "A product used in tests",
        "price": 25.0,
        "store": "Amazon",
        "category": "home-garden",
        "rating": 4.0,
        "review_count": 100,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Product(**fields)


@pytest.fixture
def product_factory():
    return make_product


@pytest.fixture
def sample_products():
    """A small mixed catalog covering every filter dimension."""
    return [
        make_product(
            id="headphones",
            title="Wireless Bluetooth Headphones",
            category="electronics",
            store="Best Buy",
            price=79.99,
            original_price=129.99,
            rating=4.6,
            review_count=5400,
            is_trending=True,
            features=["Noise cancelling", "30h battery"],
        ),
        make_product(
            id="laptop",
            title="Gaming Laptop",
            category="electronics",
            store="Newegg",
            price=999.0,
            original_price=1199.0,
            rating=4.4,
            review_count=820,
            is_featured=True,
        ),
        make_product(
            id="jeans",
            title="Denim Jeans",
            category="fashion",
            store="Target",
            price=39.5,
            discount_percentage=10,
            rating=3.9,
            review_count=210,
        ),
        make_product(
            id="mug",
            title="Coffee Mug",
            category="home-garden",
            store="Amazon",
            price=8.0,
            rating=4.8,
            review_count=15,
        ),
        make_product(
            id="tent",
            title="Camping Tent",
            category="sports-outdoors",
            store="Amazon",
            price=149.0,
            original_price=199.0,
            rating=4.1,
            review_count=1300,
            is_trending=True,
        ),
    ]


@pytest_asyncio.fixture
async def fake_redis():
    """Provide a fakeredis asyncio client for cache tests."""
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest_asyncio.fixture
async def cache(fake_redis):
    """CacheClient bound to fakeredis with its own circuit breaker."""
    return CacheClient(
        redis_client=fake_redis,
        circuit_breaker=CircuitBreaker("test_cache"),
        default_ttl=60,
    )
