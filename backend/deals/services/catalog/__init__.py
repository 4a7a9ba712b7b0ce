"""Product catalog: repositories, ingestion normalization and the query pipeline."""

from .analytics import InMemorySearchAnalytics, SearchAnalyticsRecorder, SupabaseSearchAnalytics
from .normalize import ProductValidationError, normalize_product_record
from .repository import (
    InMemoryProductRepository,
    ProductNotFoundError,
    ProductRepository,
    RepositoryError,
    SupabaseProductRepository,
)
from .service import CatalogService, get_catalog_service, initialize_catalog_service

__all__ = [
    "CatalogService",
    "get_catalog_service",
    "initialize_catalog_service",
    "InMemoryProductRepository",
    "InMemorySearchAnalytics",
    "ProductNotFoundError",
    "ProductRepository",
    "ProductValidationError",
    "RepositoryError",
    "SearchAnalyticsRecorder",
    "SupabaseProductRepository",
    "SupabaseSearchAnalytics",
    "normalize_product_record",
]
