"""
Canonical product model and ranking results.

Products are read-only from the catalog pipeline's point of view: one field
per concept, validated on construction. Adapting loosely-shaped upstream rows
is the job of deals.services.catalog.normalize.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from deals.services.pricing import calculate_discount_percentage


class Product(BaseModel):
    """A deal listed in the storefront."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    affiliate_url: Optional[str] = None

    price: float = Field(ge=0)
    original_price: Optional[float] = Field(default=None, ge=0)
    discount_percentage: Optional[float] = Field(default=None, ge=0, le=100)

    store: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    features: List[str] = Field(default_factory=list)

    rating: Optional[float] = Field(default=None, ge=0, le=5)
    review_count: int = Field(default=0, ge=0)

    is_featured: bool = False
    is_trending: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _original_price_not_below_price(self) -> "Product":
        if self.original_price is not None and self.original_price < self.price:
            raise ValueError("original_price must be greater than or equal to price")
        return self

    @property
    def effective_discount(self) -> float:
        """Stored discount, else derived from original_price; 0 when unknown."""
        if self.discount_percentage is not None:
            return self.discount_percentage
        if self.original_price is not None:
            return float(calculate_discount_percentage(self.original_price, self.price))
        return 0.0


class ScoreBreakdown(BaseModel):
    """Sub-scores behind a composite score (observability only)."""
    best_seller_score: float
    rating_score: float
    review_score: float
    price_score: float
    category_boost: float


class ProductScore(BaseModel):
    """A product with its composite desirability score in [0, 1]."""
    product: Product
    score: float
    breakdown: ScoreBreakdown
