"""
Back-office dashboard.
"""

import uuid

from fastapi import APIRouter, Depends

from rest_api.routers.shop.orders import get_order_service
from rest_api.services.domain import OrderService
from shared.utils.admin_schemas import DashboardOutput
from shared.utils.schemas import OrderOutput


router = APIRouter(tags=["admin-dashboard"])


@router.get("/dashboard", response_model=DashboardOutput)
def dashboard(
    franchise_id: uuid.UUID | None = None,
    service: OrderService = Depends(get_order_service),
) -> DashboardOutput:
    """Store-wide figures, or one franchise's with franchise_id."""
    stats = service.dashboard(franchise_id)
    stats["recent_orders"] = [OrderOutput.model_validate(o) for o in stats["recent_orders"]]
    return DashboardOutput(**stats)
