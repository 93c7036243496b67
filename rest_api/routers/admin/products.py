"""
Product management endpoints, including bulk import and export.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from rest_api.core.context import AppContext, get_app_context
from rest_api.routers._common.jobs import accept_import
from rest_api.routers._common.pagination import Pagination, get_pagination
from rest_api.routers.admin._base import get_product_service
from rest_api.services.domain import ProductService
from shared.security.auth import TokenClaims, require_admin
from shared.utils.admin_schemas import (
    ProductCreate,
    ProductExportRow,
    ProductListOutput,
    ProductOutput,
    ProductUpdate,
)
from shared.utils.schemas import BatchImportAccepted, MessageResponse, ProductImportRequest


router = APIRouter(tags=["admin-products"])


@router.get("/products", response_model=ProductListOutput)
def list_products(
    category_id: uuid.UUID | None = None,
    franchise_id: uuid.UUID | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = None,
    pagination: Pagination = Depends(get_pagination),
    service: ProductService = Depends(get_product_service),
) -> ProductListOutput:
    """Every live product, active or not, with the total for paging."""
    items, total = service.list(
        category_id=category_id,
        search=search,
        status=status_filter,
        franchise_id=franchise_id,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return ProductListOutput(items=[ProductOutput.model_validate(p) for p in items], total=total)


@router.get("/products/export", response_model=list[ProductExportRow])
def export_products(service: ProductService = Depends(get_product_service)) -> list[ProductExportRow]:
    """Every live product, unpaged, with category and franchise columns for spreadsheets."""
    return service.export()


@router.get("/products/{product_id}", response_model=ProductOutput)
def get_product(
    product_id: uuid.UUID,
    service: ProductService = Depends(get_product_service),
) -> ProductOutput:
    return ProductOutput.model_validate(service.get(product_id))


@router.post("/products", response_model=ProductOutput, status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductCreate,
    claims: TokenClaims = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
) -> ProductOutput:
    """Create a product. An empty SKU is generated."""
    return ProductOutput.model_validate(service.create(body, actor_email=claims.email))


@router.put("/products/{product_id}", response_model=ProductOutput)
def update_product(
    product_id: uuid.UUID,
    body: ProductUpdate,
    claims: TokenClaims = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
) -> ProductOutput:
    return ProductOutput.model_validate(service.update(product_id, body, actor_email=claims.email))


@router.delete("/products/{product_id}", response_model=MessageResponse)
def delete_product(
    product_id: uuid.UUID,
    claims: TokenClaims = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
) -> MessageResponse:
    """Soft delete. 409 while any order references the product."""
    service.delete(product_id, actor_email=claims.email)
    return MessageResponse(message="Product deleted")


@router.post(
    "/products/batch-import",
    response_model=BatchImportAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def batch_import(
    body: ProductImportRequest,
    claims: TokenClaims = Depends(require_admin),
    ctx: AppContext = Depends(get_app_context),
) -> BatchImportAccepted:
    """
    Queue a bulk create/update/delete of products.

    Poll GET /api/admin/jobs/{job_id} for progress. Row failures are
    reported in the job, never as an HTTP error.
    """
    return accept_import(ctx, body, claims)
