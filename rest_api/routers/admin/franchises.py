"""
Franchise management endpoints.
"""

import uuid

from fastapi import APIRouter, Depends, status

from rest_api.routers.admin._base import get_franchise_service
from rest_api.services.domain import FranchiseService
from shared.utils.admin_schemas import FranchiseCreate, FranchiseUpdate
from shared.utils.schemas import FranchiseOutput


router = APIRouter(tags=["admin-franchises"])


@router.get("/franchises", response_model=list[FranchiseOutput])
def list_franchises(service: FranchiseService = Depends(get_franchise_service)) -> list[FranchiseOutput]:
    return [FranchiseOutput.model_validate(f) for f in service.list()]


@router.get("/franchises/{franchise_id}", response_model=FranchiseOutput)
def get_franchise(
    franchise_id: uuid.UUID,
    service: FranchiseService = Depends(get_franchise_service),
) -> FranchiseOutput:
    return FranchiseOutput.model_validate(service.get(franchise_id))


@router.post("/franchises", response_model=FranchiseOutput, status_code=status.HTTP_201_CREATED)
def create_franchise(
    body: FranchiseCreate,
    service: FranchiseService = Depends(get_franchise_service),
) -> FranchiseOutput:
    """
    Create a franchise with default store hours.

    The owner email is promoted when it already has an account, or a new
    owner account is created and emailed its credentials.
    """
    return FranchiseOutput.model_validate(service.create(body))


@router.put("/franchises/{franchise_id}", response_model=FranchiseOutput)
def update_franchise(
    franchise_id: uuid.UUID,
    body: FranchiseUpdate,
    service: FranchiseService = Depends(get_franchise_service),
) -> FranchiseOutput:
    return FranchiseOutput.model_validate(service.update(franchise_id, body))
