"""
Catalog endpoints.

GET  /products?category=&search=&store=&min_price=&max_price=&min_discount=
              &sort=&page=&limit=&featured_only=&trending_only=
POST /products
PUT  /products/{product_id}
GET  /products/top?limit=&category=

Query parameters are taken as raw strings: a malformed filter value is
dropped by ProductQuery rather than rejected with a 422.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request

from deals.core.logging import get_logger
from deals.models.query import ProductPage, ProductQuery
from deals.models.responses import ProductCreatedResponse, RankedProductResult
from deals.services.catalog import (
    CatalogService,
    ProductNotFoundError,
    ProductValidationError,
    RepositoryError,
    get_catalog_service,
)

logger = get_logger(__name__)

router = APIRouter()


def require_catalog_service() -> CatalogService:
    service = get_catalog_service()
    if service is None:
        raise HTTPException(status_code=503, detail="Catalog service not available")
    return service


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


@router.get("", response_model=ProductPage)
async def list_products(
    request: Request,
    category: Optional[str] = Query(None, description="Catalog category id, or 'all'"),
    search: Optional[str] = Query(None, description="Free-text search"),
    store: Optional[str] = Query(None, description="Exact store name (case-insensitive)"),
    min_price: Optional[str] = Query(None),
    max_price: Optional[str] = Query(None),
    min_discount: Optional[str] = Query(None, description="Minimum discount percentage"),
    sort: Optional[str] = Query(None, description="relevance, price-low, price-high, discount, newest, rating"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    featured_only: Optional[str] = Query(None),
    trending_only: Optional[str] = Query(None),
    service: CatalogService = Depends(require_catalog_service),
):
    """One page of filtered, ranked catalog results."""
    params = {
        "category": category,
        "search": search,
        "store": store,
        "min_price": min_price,
        "max_price": max_price,
        "min_discount": min_discount,
        "sort": sort,
        "page": page,
        "limit": limit,
        "featured_only": featured_only,
        "trending_only": trending_only,
    }
    query = ProductQuery.model_validate({k: v for k, v in params.items() if v is not None})
    result = await service.list_products(query, client_ip=client_ip(request))

    logger.info(
        "products_listed",
        category=query.category,
        sort=query.sort.value,
        page=result.page,
        results_count=len(result.items),
        cached=result.cached,
    )
    return result


@router.get("/top", response_model=List[RankedProductResult])
async def top_products(
    limit: int = Query(200, ge=1, le=1000),
    category: Optional[str] = Query(None),
    service: CatalogService = Depends(require_catalog_service),
):
    """Best-scoring products with their score breakdowns."""
    ranked = await service.get_top_ranked(limit=limit, category=category)
    return [
        RankedProductResult(product=item.product, score=item.score, breakdown=item.breakdown)
        for item in ranked
    ]


@router.post("", response_model=ProductCreatedResponse, status_code=201)
async def create_product(
    record: Dict[str, Any] = Body(...),
    service: CatalogService = Depends(require_catalog_service),
):
    """Add a product and invalidate the cached pages it can appear in."""
    try:
        product, invalidated = await service.create_product(record)
    except ProductValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RepositoryError as e:
        logger.error("product_create_failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(status_code=500, detail="Failed to store product")

    return ProductCreatedResponse(
        product=product,
        message="Product created",
        invalidated_keys=invalidated,
    )


@router.put("/{product_id}", response_model=ProductCreatedResponse)
async def update_product(
    product_id: str,
    record: Dict[str, Any] = Body(...),
    service: CatalogService = Depends(require_catalog_service),
):
    try:
        product, invalidated = await service.update_product(product_id, record)
    except ProductValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    except RepositoryError as e:
        logger.error("product_update_failed", product_id=product_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to update product")

    return ProductCreatedResponse(
        product=product,
        message="Product updated",
        invalidated_keys=invalidated,
    )
