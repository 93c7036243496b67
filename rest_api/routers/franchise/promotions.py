"""
Franchise portal promotions: the franchise's own banners.

Staff can read them; only the owner creates, edits or deletes.
"""

import uuid

from fastapi import APIRouter, Depends, File, UploadFile, status

from rest_api.core.context import AppContext, get_app_context
from rest_api.routers._common.uploads import store_image
from rest_api.routers.franchise._base import get_promotion_service
from rest_api.services.domain import PromotionService
from shared.security.auth import TokenClaims, require_franchise, require_franchise_owner
from shared.utils.admin_schemas import PromotionCreate, PromotionUpdate
from shared.utils.schemas import MessageResponse, PromotionOutput, UploadResponse


router = APIRouter(prefix="/api/franchise", tags=["franchise-promotions"])


@router.get("/promotions", response_model=list[PromotionOutput])
def list_promotions(
    claims: TokenClaims = Depends(require_franchise),
    service: PromotionService = Depends(get_promotion_service),
) -> list[PromotionOutput]:
    """Every promotion of this franchise, inactive and expired included."""
    return [PromotionOutput.model_validate(p) for p in service.list_all(claims.franchise_id)]


@router.post("/promotions", response_model=PromotionOutput, status_code=status.HTTP_201_CREATED)
def create_promotion(
    body: PromotionCreate,
    claims: TokenClaims = Depends(require_franchise_owner),
    service: PromotionService = Depends(get_promotion_service),
) -> PromotionOutput:
    return PromotionOutput.model_validate(service.create(body, claims.franchise_id))


@router.put("/promotions/{promotion_id}", response_model=PromotionOutput)
def update_promotion(
    promotion_id: uuid.UUID,
    body: PromotionUpdate,
    claims: TokenClaims = Depends(require_franchise_owner),
    service: PromotionService = Depends(get_promotion_service),
) -> PromotionOutput:
    return PromotionOutput.model_validate(service.update(promotion_id, body, claims.franchise_id))


@router.delete("/promotions/{promotion_id}", response_model=MessageResponse)
def delete_promotion(
    promotion_id: uuid.UUID,
    claims: TokenClaims = Depends(require_franchise_owner),
    service: PromotionService = Depends(get_promotion_service),
) -> MessageResponse:
    service.delete(promotion_id, claims.franchise_id)
    return MessageResponse(message="Promotion deleted")


@router.post("/uploads/promotions", response_model=UploadResponse)
def upload_promotion_image(
    file: UploadFile = File(...),
    claims: TokenClaims = Depends(require_franchise_owner),
    ctx: AppContext = Depends(get_app_context),
) -> UploadResponse:
    return store_image(ctx, file, "promotions")
