"""
Catalog query and result page models.

Query parsing is permissive: a malformed filter value never rejects the query,
it is simply dropped (treated as absent). The one exception is category, which
must name a catalog entry or is dropped as well.
"""
import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from deals.core.catalog import normalize_category
from deals.core.config import get_settings
from deals.models.product import Product

_TRUE_VALUES = {"1", "true", "yes", "on"}


class SortOption(str, Enum):
    RELEVANCE = "relevance"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    DISCOUNT = "discount"
    NEWEST = "newest"
    RATING = "rating"


def resolve_sort_option(value: Any) -> SortOption:
    """Map a sort name to a SortOption; anything unknown means relevance."""
    if isinstance(value, SortOption):
        return value
    if isinstance(value, str):
        try:
            return SortOption(value.strip().lower())
        except ValueError:
            pass
    return SortOption.RELEVANCE


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _optional_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip().lower()
    return text or None


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return False


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number >= 1 else None


class ProductFilter(BaseModel):
    """Predicates for the filter engine; every field is optional."""

    category: Optional[str] = None
    search: Optional[str] = None
    store: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_discount: Optional[float] = None
    featured_only: bool = False
    trending_only: bool = False

    @field_validator("category", mode="before")
    @classmethod
    def _catalog_category(cls, value: Any) -> Optional[str]:
        return normalize_category(value)

    @field_validator("search", "store", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("min_price", "max_price", mode="before")
    @classmethod
    def _price_bound(cls, value: Any) -> Optional[float]:
        number = _optional_float(value)
        if number is None or number < 0:
            return None
        return number

    @field_validator("min_discount", mode="before")
    @classmethod
    def _discount_floor(cls, value: Any) -> Optional[float]:
        number = _optional_float(value)
        if number is None or number <= 0 or number > 100:
            return None
        return number

    @field_validator("featured_only", "trending_only", mode="before")
    @classmethod
    def _bool_flag(cls, value: Any) -> bool:
        return _flag(value)

    def is_empty(self) -> bool:
        values = self.model_dump(include=set(ProductFilter.model_fields)).values()
        return all(value is None or value is False for value in values)


class ProductQuery(ProductFilter):
    """A full catalog request: filters, sort strategy and pagination."""

    sort: SortOption = SortOption.RELEVANCE
    page: int = 1
    # 0 means "use DEFAULT_PAGE_SIZE"; resolved by the validator
    limit: int = Field(default=0, validate_default=True)

    @field_validator("sort", mode="before")
    @classmethod
    def _sort(cls, value: Any) -> SortOption:
        return resolve_sort_option(value)

    @field_validator("page", mode="before")
    @classmethod
    def _page(cls, value: Any) -> int:
        return _positive_int(value) or 1

    @field_validator("limit", mode="before")
    @classmethod
    def _limit(cls, value: Any) -> int:
        settings = get_settings()
        limit = _positive_int(value) or settings.default_page_size
        return min(limit, settings.max_page_size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def to_filter(self) -> ProductFilter:
        return ProductFilter(**self.model_dump(include=set(ProductFilter.model_fields)))

    def cache_payload(self) -> Dict[str, Any]:
        """Normalized, JSON-ready form of the query used for cache keys."""
        return self.model_dump(mode="json")


class ProductPage(BaseModel):
    """One page of catalog results."""
    items: List[Product]
    page: int
    limit: int
    total: Optional[int] = None
    has_more: bool
    cached: bool = False
