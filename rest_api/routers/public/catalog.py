"""
Public catalog endpoints.
Products (optionally as one franchise sells them), categories and
subcategories.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rest_api.routers._common.pagination import Pagination, get_pagination
from rest_api.services.catalog import get_product_view, list_product_views
from rest_api.services.domain import CategoryService, SubcategoryService
from shared.infrastructure.db import get_db
from shared.utils.schemas import CategoryOutput, ProductListResponse, ProductView, SubcategoryOutput


router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/products", response_model=ProductListResponse)
def list_products(
    franchise_id: uuid.UUID | None = None,
    category_id: uuid.UUID | None = None,
    q: str | None = Query(default=None, description="Search in product names"),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
) -> ProductListResponse:
    """
    List sellable products.

    With franchise_id, only that franchise's available listings are
    returned, priced with its overrides.
    """
    items = list_product_views(
        db,
        franchise_id=franchise_id,
        category_id=category_id,
        search=q,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return ProductListResponse(items=items)


@router.get("/products/{product_id}", response_model=ProductView)
def get_product(
    product_id: uuid.UUID,
    franchise_id: uuid.UUID | None = None,
    db: Session = Depends(get_db),
) -> ProductView:
    return get_product_view(db, product_id, franchise_id)


@router.get("/categories", response_model=list[CategoryOutput])
def list_categories(db: Session = Depends(get_db)) -> list[CategoryOutput]:
    """Active categories, alphabetical."""
    categories = CategoryService(db).list(active_only=True)
    return [CategoryOutput.model_validate(c) for c in categories]


@router.get("/categories/{category_id}", response_model=CategoryOutput)
def get_category(category_id: uuid.UUID, db: Session = Depends(get_db)) -> CategoryOutput:
    return CategoryOutput.model_validate(CategoryService(db).get(category_id))


@router.get("/subcategories", response_model=list[SubcategoryOutput])
def list_subcategories(
    category_id: uuid.UUID | None = None,
    db: Session = Depends(get_db),
) -> list[SubcategoryOutput]:
    return [SubcategoryOutput.model_validate(s) for s in SubcategoryService(db).list(category_id)]
