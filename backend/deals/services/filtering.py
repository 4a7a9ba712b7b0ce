"""
Filter engine: narrow a product collection with caller-supplied predicates.

All supplied predicates must hold (AND); absent predicates are no-ops. Free
text matches case-insensitively against title, description, category and
feature bullets, any one field being enough. Filtering never raises and never
mutates its input; malformed predicate values are dropped when the filter is
parsed (see deals.models.query.ProductFilter).
"""
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from deals.core.logging import get_logger
from deals.models.product import Product
from deals.models.query import ProductFilter

logger = get_logger(__name__)

FilterInput = Union[ProductFilter, Mapping[str, Any], None]


def coerce_filter(filters: FilterInput) -> ProductFilter:
    """Turn a ProductFilter, mapping or None into a ProductFilter."""
    if isinstance(filters, ProductFilter):
        return filters
    if isinstance(filters, Mapping):
        try:
            return ProductFilter.model_validate(dict(filters))
        except ValidationError as e:
            logger.warning("filter_parse_failed", error=str(e))
    return ProductFilter()


def _lower(value: Optional[str]) -> str:
    return value.lower() if value else ""


def filter_by_category(products: Iterable[Product], category: Optional[str]) -> List[Product]:
    if not category:
        return list(products)
    wanted = category.lower()
    return [p for p in products if _lower(p.category) == wanted]


def filter_by_store(products: Iterable[Product], store: Optional[str]) -> List[Product]:
    if not store:
        return list(products)
    wanted = store.strip().lower()
    return [p for p in products if _lower(p.store).strip() == wanted]


def filter_by_price(
    products: Iterable[Product],
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> List[Product]:
    kept = []
    for product in products:
        if min_price is not None and product.price < min_price:
            continue
        if max_price is not None and product.price > max_price:
            continue
        kept.append(product)
    return kept


def filter_by_discount(products: Iterable[Product], min_discount: Optional[float]) -> List[Product]:
    if not min_discount:
        return list(products)
    return [p for p in products if p.effective_discount >= min_discount]


def filter_by_flags(
    products: Iterable[Product],
    featured_only: bool = False,
    trending_only: bool = False,
) -> List[Product]:
    return [
        p for p in products
        if (not featured_only or p.is_featured) and (not trending_only or p.is_trending)
    ]


def matches_search(product: Product, term: str) -> bool:
    if term in product.title.lower():
        return True
    if term in _lower(product.description):
        return True
    if term in _lower(product.category):
        return True
    return any(term in feature.lower() for feature in product.features)


def search_products(products: Iterable[Product], query: Optional[str]) -> List[Product]:
    term = (query or "").strip().lower()
    if not term:
        return list(products)
    return [p for p in products if matches_search(p, term)]


def filter_products(products: Iterable[Product], filters: FilterInput = None) -> List[Product]:
    """
    Apply every supplied predicate to products.

    Args:
        products: Candidate set (any iterable; not modified)
        filters: ProductFilter, a mapping of raw filter values, or None

    Returns:
        The products satisfying all predicates, in their original order
    """
    criteria = coerce_filter(filters)
    result = list(products)
    if criteria.is_empty():
        return result

    candidates_count = len(result)
    result = filter_by_category(result, criteria.category)
    result = filter_by_store(result, criteria.store)
    result = filter_by_price(result, criteria.min_price, criteria.max_price)
    result = filter_by_discount(result, criteria.min_discount)
    result = filter_by_flags(result, criteria.featured_only, criteria.trending_only)
    result = search_products(result, criteria.search)

    logger.debug(
        "products_filtered",
        candidates_count=candidates_count,
        kept_count=len(result),
        filters=criteria.model_dump(exclude_none=True),
    )
    return result
