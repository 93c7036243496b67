"""
Order endpoints.

Customers place and read their own orders; admins and franchise users
read orders in their scope and move them through the status workflow.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from rest_api.core.context import AppContext, get_app_context
from rest_api.routers._common.pagination import Pagination, get_pagination
from rest_api.services.domain import OrderService
from shared.infrastructure.db import get_db
from shared.security.auth import TokenClaims, require_auth, require_staff_or_admin
from shared.utils.schemas import (
    CreateOrderRequest,
    OrderListResponse,
    OrderOutput,
    OrderResponse,
    OrderTransitionsResponse,
    UpdateOrderStatusRequest,
)


router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_order_service(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
) -> OrderService:
    return OrderService(db, ctx.mailer, ctx.settings)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    body: CreateOrderRequest,
    claims: TokenClaims = Depends(require_auth),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """
    Check out the caller's cart.

    Stock is decremented, the cart emptied and points_earned recorded in
    one transaction; points are credited on delivery.
    """
    order = service.create_order(claims.user_id, body)
    return OrderResponse(order=OrderOutput.model_validate(order))


@router.get("", response_model=OrderListResponse)
def list_orders(
    status_filter: str | None = Query(default=None, alias="status"),
    pagination: Pagination = Depends(get_pagination),
    claims: TokenClaims = Depends(require_auth),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    orders = service.list_orders(claims, status_filter, pagination.limit, pagination.offset)
    return OrderListResponse(orders=[OrderOutput.model_validate(o) for o in orders])


@router.get("/transitions", response_model=OrderTransitionsResponse)
def order_transitions(
    status_filter: str | None = Query(default=None, alias="status"),
    claims: TokenClaims = Depends(require_auth),
) -> OrderTransitionsResponse:
    """The status workflow, or the statuses reachable from one status."""
    return OrderTransitionsResponse(transitions=OrderService.allowed_transitions(status_filter))


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: uuid.UUID,
    claims: TokenClaims = Depends(require_auth),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return OrderResponse(order=OrderOutput.model_validate(service.get_order(claims, order_id)))


@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: uuid.UUID,
    body: UpdateOrderStatusRequest,
    claims: TokenClaims = Depends(require_staff_or_admin),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Move an order to a new status. 409 when the workflow does not allow it."""
    order = service.update_status(order_id, body.status, claims)
    return OrderResponse(order=OrderOutput.model_validate(order))
