"""
Product repositories: where the catalog's candidate sets come from.

The catalog service only talks to the ProductRepository interface:
- query_products(filters, sort, offset, limit) -> (items, total_count)
- get_product(product_id) -> product | None
- insert_product(product) -> product
- update_product(product) -> product

SupabaseProductRepository reads the `products` table; InMemoryProductRepository
backs tests and local development.
"""
import asyncio
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Iterable, List, Optional, Tuple

from deals.core.database import get_supabase_client
from deals.core.logging import get_logger
from deals.core.metrics import record_repository_error
from deals.models.product import Product
from deals.models.query import ProductFilter, SortOption
from deals.services.catalog.normalize import normalize_product_record, normalize_product_records, product_to_record
from deals.services.filtering import filter_products
from deals.services.ranking.sort import sort_products

logger = get_logger(__name__)

SUPABASE_PAGE_SIZE = 1000

# Server-side ordering for explicit sorts; the service re-sorts in memory anyway
_SUPABASE_ORDER = {
    SortOption.PRICE_LOW: ("price", False),
    SortOption.PRICE_HIGH: ("price", True),
    SortOption.DISCOUNT: ("discount_percentage", True),
    SortOption.RATING: ("rating", True),
    SortOption.NEWEST: ("updated_at", True),
    SortOption.RELEVANCE: ("created_at", True),
}


class RepositoryError(Exception):
    """Raised when the backing store cannot serve a request."""
    pass


class ProductNotFoundError(RepositoryError):
    """Raised when an update targets a product the store does not have."""
    pass


class ProductRepository(ABC):

    @abstractmethod
    async def query_products(
        self,
        filters: Optional[ProductFilter] = None,
        sort: SortOption = SortOption.RELEVANCE,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Product], int]:
        """
        Fetch products matching filters.

        A limit of None returns the whole matching set from offset onwards.

        Raises:
            RepositoryError: if the backing store fails
        """

    @abstractmethod
    async def get_product(self, product_id: str) -> Optional[Product]:
        """Look up one product by id (None when absent)."""

    @abstractmethod
    async def insert_product(self, product: Product) -> Product:
        """Persist a new product and return the stored version."""

    @abstractmethod
    async def update_product(self, product: Product) -> Product:
        """Replace an existing product and return the stored version."""


class InMemoryProductRepository(ProductRepository):
    """List-backed repository applying the same filter and sort rules as the catalog."""

    def __init__(self, products: Optional[Iterable[Product]] = None):
        self._products: List[Product] = list(products or [])
        self._lock = Lock()

    async def query_products(
        self,
        filters: Optional[ProductFilter] = None,
        sort: SortOption = SortOption.RELEVANCE,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Product], int]:
        with self._lock:
            snapshot = list(self._products)

        matched = sort_products(filter_products(snapshot, filters), sort)
        total = len(matched)
        end = None if limit is None else offset + limit
        return matched[offset:end], total

    async def get_product(self, product_id: str) -> Optional[Product]:
        with self._lock:
            return next((p for p in self._products if p.id == product_id), None)

    async def insert_product(self, product: Product) -> Product:
        with self._lock:
            if any(existing.id == product.id for existing in self._products):
                raise RepositoryError(f"product {product.id} already exists")
            self._products.append(product)
        return product

    async def update_product(self, product: Product) -> Product:
        with self._lock:
            for index, existing in enumerate(self._products):
                if existing.id == product.id:
                    self._products[index] = product
                    return product
        raise ProductNotFoundError(f"product {product.id} not found")


class SupabaseProductRepository(ProductRepository):
    """Reads and writes the Supabase `products` table."""

    def __init__(self, client: Any = None, table: str = "products"):
        self._client = client
        self.table = table

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        if self._client is None:
            raise RepositoryError("Supabase client not configured")
        return self._client

    def _base_query(self, filters: ProductFilter, sort: SortOption):
        query = self.client.table(self.table).select("*", count="exact")

        # Only exact predicates are pushed down; text search and derived
        # discounts are evaluated by the filter engine.
        if filters.category:
            query = query.eq("category", filters.category)
        if filters.store:
            query = query.ilike("store", filters.store)
        if filters.min_price is not None:
            query = query.gte("price", filters.min_price)
        if filters.max_price is not None:
            query = query.lte("price", filters.max_price)
        if filters.featured_only:
            query = query.eq("is_featured", True)
        if filters.trending_only:
            query = query.eq("is_trending", True)

        column, descending = _SUPABASE_ORDER[sort]
        return query.order(column, desc=descending).order("id")

    async def query_products(
        self,
        filters: Optional[ProductFilter] = None,
        sort: SortOption = SortOption.RELEVANCE,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Product], int]:
        filters = filters or ProductFilter()
        rows: List[dict] = []
        total: Optional[int] = None
        start = offset

        try:
            while True:
                batch_size = SUPABASE_PAGE_SIZE if limit is None else min(SUPABASE_PAGE_SIZE, offset + limit - start)
                if batch_size <= 0:
                    break
                request = self._base_query(filters, sort).range(start, start + batch_size - 1)
                response = await asyncio.to_thread(request.execute)
                data = response.data or []
                if total is None:
                    total = response.count
                rows.extend(data)
                start += len(data)
                if len(data) < batch_size:
                    break
        except RepositoryError:
            record_repository_error("query")
            raise
        except Exception as e:
            record_repository_error("query")
            logger.error(
                "supabase_query_failed",
                table=self.table,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise RepositoryError(f"failed to query {self.table}") from e

        products = normalize_product_records(rows)
        logger.debug(
            "supabase_query_completed",
            table=self.table,
            rows_count=len(rows),
            products_count=len(products),
            total=total,
        )
        return products, total if total is not None else offset + len(rows)

    async def get_product(self, product_id: str) -> Optional[Product]:
        try:
            request = self.client.table(self.table).select("*").eq("id", product_id).limit(1)
            response = await asyncio.to_thread(request.execute)
        except RepositoryError:
            record_repository_error("get")
            raise
        except Exception as e:
            record_repository_error("get")
            logger.error(
                "supabase_get_failed",
                table=self.table,
                product_id=product_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise RepositoryError(f"failed to load product {product_id}") from e

        rows = normalize_product_records(response.data or [])
        return rows[0] if rows else None

    async def _write(self, operation: str, product: Product) -> Product:
        record = product_to_record(product)
        try:
            table = self.client.table(self.table)
            if operation == "insert":
                request = table.insert(record)
            else:
                request = table.update(record).eq("id", product.id)
            response = await asyncio.to_thread(request.execute)
        except RepositoryError:
            record_repository_error(operation)
            raise
        except Exception as e:
            record_repository_error(operation)
            logger.error(
                "supabase_write_failed",
                table=self.table,
                operation=operation,
                product_id=product.id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise RepositoryError(f"failed to {operation} product {product.id}") from e

        if not response.data:
            if operation == "update":
                raise ProductNotFoundError(f"product {product.id} not found")
            record_repository_error(operation)
            raise RepositoryError(f"{operation} of product {product.id} returned no row")
        return normalize_product_record(response.data[0])

    async def insert_product(self, product: Product) -> Product:
        return await self._write("insert", product)

    async def update_product(self, product: Product) -> Product:
        return await self._write("update", product)
