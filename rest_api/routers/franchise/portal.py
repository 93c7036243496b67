"""
Franchise portal endpoints: store profile, listings, orders, hours and team.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from rest_api.routers._common.pagination import Pagination, get_pagination
from rest_api.routers.franchise._base import get_franchise_service, staff_output
from rest_api.routers.shop.orders import get_order_service
from rest_api.services.domain import FranchiseService, OrderService
from shared.security.auth import TokenClaims, require_franchise, require_franchise_owner
from shared.utils.admin_schemas import (
    FranchiseProductListOutput,
    FranchiseProductOutput,
    PricingUpdateRequest,
    StaffInviteRequest,
    StaffOutput,
    StockUpdateRequest,
    StoreHoursListOutput,
    StoreHoursUpdate,
)
from shared.utils.schemas import (
    FranchiseOutput,
    MessageResponse,
    OrderListResponse,
    OrderOutput,
    OrderResponse,
    StoreHoursOutput,
    UpdateOrderStatusRequest,
)


router = APIRouter(prefix="/api/franchise", tags=["franchise-portal"])


@router.get("/me", response_model=FranchiseOutput)
def my_franchise(
    claims: TokenClaims = Depends(require_franchise),
    service: FranchiseService = Depends(get_franchise_service),
) -> FranchiseOutput:
    return FranchiseOutput.model_validate(service.get(claims.franchise_id))


# =============================================================================
# Listings
# =============================================================================


@router.get("/products", response_model=FranchiseProductListOutput)
def list_products(
    search: str | None = None,
    low_stock: bool = False,
    pagination: Pagination = Depends(get_pagination),
    claims: TokenClaims = Depends(require_franchise),
    service: FranchiseService = Depends(get_franchise_service),
) -> FranchiseProductListOutput:
    """This franchise's listings. low_stock keeps those at or under their reorder level."""
    items, total = service.list_products(
        claims.franchise_id, search, low_stock, pagination.limit, pagination.offset
    )
    return FranchiseProductListOutput(items=items, total=total)


@router.put("/products/{product_id}/stock", response_model=FranchiseProductOutput)
def update_stock(
    product_id: uuid.UUID,
    body: StockUpdateRequest,
    claims: TokenClaims = Depends(require_franchise),
    service: FranchiseService = Depends(get_franchise_service),
) -> FranchiseProductOutput:
    return service.update_stock(claims.franchise_id, product_id, body)


@router.put("/products/{product_id}/pricing", response_model=FranchiseProductOutput)
def update_pricing(
    product_id: uuid.UUID,
    body: PricingUpdateRequest,
    claims: TokenClaims = Depends(require_franchise_owner),
    service: FranchiseService = Depends(get_franchise_service),
) -> FranchiseProductOutput:
    """Set price overrides. Owner only."""
    return service.update_pricing(claims.franchise_id, product_id, body)


# =============================================================================
# Orders
# =============================================================================


@router.get("/orders", response_model=OrderListResponse)
def list_orders(
    status_filter: str | None = Query(default=None, alias="status"),
    pagination: Pagination = Depends(get_pagination),
    claims: TokenClaims = Depends(require_franchise),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    orders = service.list_orders(claims, status_filter, pagination.limit, pagination.offset)
    return OrderListResponse(orders=[OrderOutput.model_validate(o) for o in orders])


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: uuid.UUID,
    body: UpdateOrderStatusRequest,
    claims: TokenClaims = Depends(require_franchise),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = service.update_status(order_id, body.status, claims)
    return OrderResponse(order=OrderOutput.model_validate(order))


# =============================================================================
# Store hours
# =============================================================================


@router.get("/hours", response_model=StoreHoursListOutput)
def get_hours(
    claims: TokenClaims = Depends(require_franchise),
    service: FranchiseService = Depends(get_franchise_service),
) -> StoreHoursListOutput:
    hours = service.get_hours(claims.franchise_id)
    return StoreHoursListOutput(hours=[StoreHoursOutput.model_validate(h) for h in hours])


@router.put("/hours", response_model=StoreHoursListOutput)
def update_hours(
    body: StoreHoursUpdate,
    claims: TokenClaims = Depends(require_franchise_owner),
    service: FranchiseService = Depends(get_franchise_service),
) -> StoreHoursListOutput:
    hours = service.update_hours(claims.franchise_id, body.hours)
    return StoreHoursListOutput(hours=[StoreHoursOutput.model_validate(h) for h in hours])


# =============================================================================
# Team
# =============================================================================


@router.get("/staff", response_model=list[StaffOutput])
def list_staff(
    claims: TokenClaims = Depends(require_franchise),
    service: FranchiseService = Depends(get_franchise_service),
) -> list[StaffOutput]:
    return [staff_output(m) for m in service.list_staff(claims.franchise_id)]


@router.post("/staff", response_model=StaffOutput, status_code=status.HTTP_201_CREATED)
def invite_staff(
    body: StaffInviteRequest,
    claims: TokenClaims = Depends(require_franchise_owner),
    service: FranchiseService = Depends(get_franchise_service),
) -> StaffOutput:
    """Add a team member. New emails get an account and an invite with a temporary password."""
    return staff_output(service.invite_staff(claims.franchise_id, body))


@router.delete("/staff/{staff_id}", response_model=MessageResponse)
def remove_staff(
    staff_id: uuid.UUID,
    claims: TokenClaims = Depends(require_franchise_owner),
    service: FranchiseService = Depends(get_franchise_service),
) -> MessageResponse:
    service.remove_staff(claims.franchise_id, staff_id)
    return MessageResponse(message="Staff member removed")
