"""
Public promotion banners.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rest_api.services.domain import PromotionService
from shared.infrastructure.db import get_db
from shared.utils.schemas import PromotionOutput


router = APIRouter(prefix="/api/promotions", tags=["promotions"])


@router.get("", response_model=list[PromotionOutput])
def list_promotions(db: Session = Depends(get_db)) -> list[PromotionOutput]:
    """Storefront promotions that are active and inside their schedule."""
    return [PromotionOutput.model_validate(p) for p in PromotionService(db).list_live()]


@router.get("/{promotion_id}", response_model=PromotionOutput)
def get_promotion(promotion_id: uuid.UUID, db: Session = Depends(get_db)) -> PromotionOutput:
    return PromotionOutput.model_validate(PromotionService(db).get_live(promotion_id))
