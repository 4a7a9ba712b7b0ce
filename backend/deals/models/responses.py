"""
Response models for API endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel

from deals.models.product import Product, ScoreBreakdown


class RankedProductResult(BaseModel):
    """Top-ranked product with its score explanation."""
    product: Product
    score: float
    breakdown: Optional[ScoreBreakdown] = None


class ProductCreatedResponse(BaseModel):
    product: Product
    message: str
    invalidated_keys: int


class CategoryResult(BaseModel):
    id: str
    name: str
    description: str


class ApiUsageResult(BaseModel):
    used: int
    remaining: int
    limit: int


class CacheInvalidationResult(BaseModel):
    pattern: str
    deleted: int


class CategoryListResponse(BaseModel):
    categories: List[CategoryResult]
