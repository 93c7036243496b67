"""
Storefront promotion management.

Banner images are uploaded through /api/admin/uploads/promotions first;
the returned URL goes into image_url.
"""

import uuid

from fastapi import APIRouter, Depends, status

from rest_api.routers.admin._base import get_promotion_service
from rest_api.services.domain import PromotionService
from shared.utils.admin_schemas import PromotionCreate, PromotionUpdate
from shared.utils.schemas import MessageResponse, PromotionOutput


router = APIRouter(tags=["admin-promotions"])


@router.get("/promotions", response_model=list[PromotionOutput])
def list_promotions(service: PromotionService = Depends(get_promotion_service)) -> list[PromotionOutput]:
    """All promotions, inactive and expired included."""
    return [PromotionOutput.model_validate(p) for p in service.list_all()]


@router.get("/promotions/{promotion_id}", response_model=PromotionOutput)
def get_promotion(
    promotion_id: uuid.UUID,
    service: PromotionService = Depends(get_promotion_service),
) -> PromotionOutput:
    return PromotionOutput.model_validate(service.get(promotion_id))


@router.post("/promotions", response_model=PromotionOutput, status_code=status.HTTP_201_CREATED)
def create_promotion(
    body: PromotionCreate,
    service: PromotionService = Depends(get_promotion_service),
) -> PromotionOutput:
    return PromotionOutput.model_validate(service.create(body))


@router.put("/promotions/{promotion_id}", response_model=PromotionOutput)
def update_promotion(
    promotion_id: uuid.UUID,
    body: PromotionUpdate,
    service: PromotionService = Depends(get_promotion_service),
) -> PromotionOutput:
    """A replaced image_url removes the old image from storage."""
    return PromotionOutput.model_validate(service.update(promotion_id, body))


@router.delete("/promotions/{promotion_id}", response_model=MessageResponse)
def delete_promotion(
    promotion_id: uuid.UUID,
    service: PromotionService = Depends(get_promotion_service),
) -> MessageResponse:
    service.delete(promotion_id)
    return MessageResponse(message="Promotion deleted")
