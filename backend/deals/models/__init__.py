"""Pydantic models for products, catalog queries and API responses."""
from .product import Product, ProductScore, ScoreBreakdown
from .query import ProductFilter, ProductPage, ProductQuery, SortOption, resolve_sort_option

__all__ = [
    "Product",
    "ProductScore",
    "ScoreBreakdown",
    "ProductFilter",
    "ProductPage",
    "ProductQuery",
    "SortOption",
    "resolve_sort_option",
]
