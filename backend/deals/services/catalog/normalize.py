"""
Ingestion-side normalization of upstream product rows.

Upstream sources (the Supabase table, affiliate feeds, seed scripts) spell the
same concept several ways: `image_url` / `imageUrl` / `mainImageUrl`,
`reviews_count` / `reviewCount`, string prices with currency symbols, and so
on. Everything is mapped onto the canonical Product here so the ranking
pipeline only ever sees one shape.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from deals.core.catalog import normalize_category
from deals.core.logging import get_logger
from deals.models.product import Product
from deals.services.pricing import parse_price

logger = get_logger(__name__)

_datetime_adapter = TypeAdapter(datetime)

FIELD_ALIASES: Dict[str, tuple] = {
    "id": ("id", "asin", "product_id"),
    "title": ("title", "name"),
    "description": ("description",),
    "image_url": ("image_url", "imageUrl", "mainImageUrl", "image"),
    "affiliate_url": ("affiliate_url", "affiliateUrl", "link", "url"),
    "price": ("price",),
    "original_price": ("original_price", "originalPrice"),
    "discount_percentage": ("discount_percentage", "discountPercentage", "discount"),
    "store": ("store", "vendor", "source"),
    "brand": ("brand",),
    "category": ("category",),
    "features": ("features", "featureBullets", "feature_bullets"),
    "rating": ("rating",),
    "review_count": ("reviews_count", "review_count", "reviewCount"),
    "is_featured": ("is_featured", "isFeatured"),
    "is_trending": ("is_trending", "isTrending"),
    "created_at": ("created_at", "createdAt"),
    "updated_at": ("updated_at", "updatedAt"),
}


class ProductValidationError(ValueError):
    """Raised when a record cannot be turned into a valid Product."""
    pass


def _pick(raw: Mapping[str, Any], field: str) -> Any:
    for alias in FIELD_ALIASES[field]:
        value = raw.get(alias)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _amount(value: Any) -> Optional[float]:
    if value is None:
        return None
    amount = parse_price(value)
    return amount if amount > 0 else None


def _rating(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None
    return rating if 0 <= rating <= 5 else None


def _count(value: Any) -> int:
    if value is None:
        return 0
    try:
        count = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def _discount(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        discount = float(value)
    except (TypeError, ValueError):
        return None
    return min(max(discount, 0.0), 100.0)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return _datetime_adapter.validate_python(value)
    except ValidationError:
        return None


def _features(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, Iterable):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return []


# Fields a newly published product must carry
REQUIRED_NEW_PRODUCT_FIELDS = ("title", "price", "affiliate_url", "store", "category")


def validate_new_product_record(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Check a record submitted for publication and pin its category id.

    Upstream rows may be sparse, but a product created through the API must
    carry every field in REQUIRED_NEW_PRODUCT_FIELDS, a positive price and a
    category from the closed catalog.

    Returns:
        A copy of raw whose category is the catalog id

    Raises:
        ProductValidationError: listing what is missing or invalid
    """
    missing = [field for field in REQUIRED_NEW_PRODUCT_FIELDS if _text(_pick(raw, field)) is None]
    if missing:
        raise ProductValidationError(f"missing required fields: {', '.join(missing)}")

    if parse_price(_pick(raw, "price")) <= 0:
        raise ProductValidationError("price must be a positive amount")

    category = normalize_category(_text(_pick(raw, "category")))
    if category is None:
        raise ProductValidationError(f"unknown category: {_pick(raw, 'category')}")

    return {**raw, "category": category}


def normalize_product_record(raw: Mapping[str, Any], generate_id: bool = False) -> Product:
    """
    Build a canonical Product from a loosely-shaped record.

    Args:
        raw: Upstream row (snake_case or camelCase keys)
        generate_id: Assign a fresh UUID when the record carries no id

    Raises:
        ProductValidationError: missing id/title or values the Product rejects
    """
    product_id = _text(_pick(raw, "id"))
    if product_id is None:
        if not generate_id:
            raise ProductValidationError("product record has no id")
        product_id = str(uuid.uuid4())

    title = _text(_pick(raw, "title"))
    if title is None:
        raise ProductValidationError(f"product {product_id} has no title")

    price = parse_price(_pick(raw, "price"))
    original_price = _amount(_pick(raw, "original_price"))
    if original_price is not None and original_price < price:
        # An "original" price below the sale price is upstream noise
        original_price = None

    try:
        return Product(
            id=product_id,
            title=title,
            description=_text(_pick(raw, "description")),
            image_url=_text(_pick(raw, "image_url")),
            affiliate_url=_text(_pick(raw, "affiliate_url")),
            price=max(price, 0.0),
            original_price=original_price,
            discount_percentage=_discount(_pick(raw, "discount_percentage")),
            store=_text(_pick(raw, "store")),
            brand=_text(_pick(raw, "brand")),
            category=_text(_pick(raw, "category")),
            features=_features(_pick(raw, "features")),
            rating=_rating(_pick(raw, "rating")),
            review_count=_count(_pick(raw, "review_count")),
            is_featured=_flag(_pick(raw, "is_featured")),
            is_trending=_flag(_pick(raw, "is_trending")),
            created_at=_timestamp(_pick(raw, "created_at")),
            updated_at=_timestamp(_pick(raw, "updated_at")),
        )
    except ValidationError as e:
        raise ProductValidationError(f"product {product_id} is invalid: {e}") from e


def normalize_product_records(rows: Iterable[Mapping[str, Any]]) -> List[Product]:
    """Normalize many rows, skipping (and logging) the ones that are unusable."""
    products = []
    for row in rows:
        try:
            products.append(normalize_product_record(row))
        except ProductValidationError as e:
            logger.warning("product_record_skipped", error=str(e))
    return products


def product_to_record(product: Product) -> Dict[str, Any]:
    """Canonical Product -> `products` table row."""
    record = product.model_dump(mode="json", exclude_none=True)
    record["reviews_count"] = record.pop("review_count", 0)
    return record
