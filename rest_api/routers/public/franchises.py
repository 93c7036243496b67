"""
Public franchise lookup.
Customers find the stores that deliver to them.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rest_api.services.domain import FranchiseService, PromotionService
from shared.infrastructure.db import get_db
from shared.utils.schemas import FranchiseOutput, NearbyFranchiseOutput, PromotionOutput


router = APIRouter(prefix="/api/franchises", tags=["franchises"])


@router.get("/nearest", response_model=NearbyFranchiseOutput)
def nearest_franchise(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    db: Session = Depends(get_db),
) -> NearbyFranchiseOutput:
    """Closest active franchise whose delivery radius covers the point."""
    return FranchiseService(db).nearest(lat, lng)


@router.get("/nearby", response_model=list[NearbyFranchiseOutput])
def nearby_franchises(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    db: Session = Depends(get_db),
) -> list[NearbyFranchiseOutput]:
    return FranchiseService(db).nearby(lat, lng)


@router.get("/{franchise_id}", response_model=FranchiseOutput)
def get_franchise(franchise_id: uuid.UUID, db: Session = Depends(get_db)) -> FranchiseOutput:
    return FranchiseOutput.model_validate(FranchiseService(db).get(franchise_id, active_only=True))


@router.get("/{franchise_id}/promotions", response_model=list[PromotionOutput])
def franchise_promotions(franchise_id: uuid.UUID, db: Session = Depends(get_db)) -> list[PromotionOutput]:
    """Live promotions of one active franchise."""
    FranchiseService(db).get(franchise_id, active_only=True)
    promotions = PromotionService(db).list_live(franchise_id)
    return [PromotionOutput.model_validate(p) for p in promotions]
