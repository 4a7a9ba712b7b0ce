"""
Sort orchestrator: pick a named ordering strategy for a product list.

Every strategy is a stable sort, so products that compare equal under the
strategy (and its documented tie-break) keep their input order. That makes
each ordering total and repeatable for a given input order.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from deals.core.logging import get_logger
from deals.models.product import Product
from deals.models.query import SortOption, resolve_sort_option
from deals.services.ranking.score import rank_products

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return _EPOCH.timestamp()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def recency_timestamp(product: Product) -> float:
    """updated_at, else created_at, else the epoch."""
    return _timestamp(product.updated_at or product.created_at)


def _by_relevance(products: Sequence[Product]) -> List[Product]:
    return [item.product for item in rank_products(products)]


def _by_price_low(products: Sequence[Product]) -> List[Product]:
    return sorted(products, key=lambda p: p.price)


def _by_price_high(products: Sequence[Product]) -> List[Product]:
    return sorted(products, key=lambda p: -p.price)


def _by_discount(products: Sequence[Product]) -> List[Product]:
    return sorted(products, key=lambda p: -p.effective_discount)


def _by_rating(products: Sequence[Product]) -> List[Product]:
    return sorted(products, key=lambda p: (-(p.rating or 0.0), -p.review_count))


def _by_newest(products: Sequence[Product]) -> List[Product]:
    return sorted(products, key=lambda p: -recency_timestamp(p))


SORT_STRATEGIES: Dict[SortOption, Callable[[Sequence[Product]], List[Product]]] = {
    SortOption.RELEVANCE: _by_relevance,
    SortOption.PRICE_LOW: _by_price_low,
    SortOption.PRICE_HIGH: _by_price_high,
    SortOption.DISCOUNT: _by_discount,
    SortOption.RATING: _by_rating,
    SortOption.NEWEST: _by_newest,
}


def sort_products(products: Sequence[Product], sort: Any = SortOption.RELEVANCE) -> List[Product]:
    """
    Order products with the named strategy.

    Args:
        products: Products to order (not modified)
        sort: SortOption or its name; unknown names fall back to relevance

    Returns:
        A new, ordered list
    """
    option = resolve_sort_option(sort)
    if option is SortOption.RELEVANCE and sort not in (None, SortOption.RELEVANCE, SortOption.RELEVANCE.value):
        logger.debug("sort_option_fallback", requested=str(sort), applied=option.value)
    return SORT_STRATEGIES[option](list(products))


def get_top_ranked_products(products: Sequence[Product], limit: int = 200) -> List[Product]:
    """
    Best-scoring products, scored against the full set before truncation.
    """
    if limit <= 0:
        return []
    return [item.product for item in rank_products(list(products))[:limit]]
