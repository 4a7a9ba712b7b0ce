"""
Category listing.

GET /categories
"""
from fastapi import APIRouter

from deals.core.catalog import CATEGORIES
from deals.models.responses import CategoryListResponse, CategoryResult

router = APIRouter()


@router.get("", response_model=CategoryListResponse)
async def list_categories():
    return CategoryListResponse(
        categories=[
            CategoryResult(id=c.id, name=c.name, description=c.description)
            for c in CATEGORIES
        ]
    )
