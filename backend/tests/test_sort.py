"""
Unit tests for the sort orchestrator.
"""
from datetime import datetime, timezone

import pytest

from deals.models.query import SortOption
from deals.services.ranking import get_top_ranked_products, rank_products, sort_products
from deals.services.ranking.sort import recency_timestamp
from tests.conftest import make_product


def ids(products):
    return [p.id for p in products]


def test_price_low_and_high_are_reverses(sample_products):
    low = sort_products(sample_products, SortOption.PRICE_LOW)
    high = sort_products(sample_products, "price-high")

    assert ids(low) == ["mug", "jeans", "headphones", "tent", "laptop"]
    assert ids(high) == list(reversed(ids(low)))


def test_discount_sort(sample_products):
    result = sort_products(sample_products, "discount")
    assert ids(result) == ["headphones", "tent", "laptop", "jeans", "mug"]


def test_rating_sort_breaks_ties_on_review_count():
    a = make_product(id="a", rating=4.5, review_count=10)
    b = make_product(id="b", rating=4.5, review_count=500)
    c = make_product(id="c", rating=4.9, review_count=1)
    unrated = make_product(id="d", rating=None, review_count=10000)

    assert ids(sort_products([a, b, c, unrated], "rating")) == ["c", "b", "a", "d"]


def test_newest_prefers_updated_then_created():
    old = make_product(
        id="old",
        created_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
        updated_at=None,
    )
    refreshed = make_product(
        id="refreshed",
        created_at=datetime(2022, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )
    undated = make_product(id="undated", created_at=None, updated_at=None)

    assert ids(sort_products([undated, old, refreshed], "newest")) == ["refreshed", "old", "undated"]


def test_newest_is_stable_for_identical_updated_at():
    updated = datetime(2024, 5, 1, tzinfo=timezone.utc)
    first = make_product(id="first", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc), updated_at=updated)
    second = make_product(id="second", created_at=datetime(2024, 3, 1, tzinfo=timezone.utc), updated_at=updated)

    runs = [ids(sort_products([first, second], "newest")) for _ in range(5)]
    assert all(run == runs[0] for run in runs)
    assert runs[0] == ["first", "second"]


def test_naive_timestamps_are_treated_as_utc():
    naive = make_product(updated_at=datetime(2024, 1, 1))
    aware = make_product(updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert recency_timestamp(naive) == recency_timestamp(aware)


@pytest.mark.parametrize("name", [None, "", "bogus", 42])
def test_unknown_sort_falls_back_to_relevance(sample_products, name):
    expected = [item.product.id for item in rank_products(sample_products)]
    assert ids(sort_products(sample_products, name)) == expected


def test_sort_does_not_mutate_input(sample_products):
    before = ids(sample_products)
    sort_products(sample_products, "price-high")
    assert ids(sample_products) == before


def test_get_top_ranked_products(sample_products):
    ranked = [item.product.id for item in rank_products(sample_products)]
    assert ids(get_top_ranked_products(sample_products, limit=2)) == ranked[:2]
    assert get_top_ranked_products(sample_products, limit=0) == []
