"""
Category and subcategory management endpoints.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from rest_api.services.domain import CategoryService, SubcategoryService
from shared.infrastructure.db import get_db
from shared.utils.admin_schemas import (
    CategoryCreate,
    CategoryUpdate,
    SubcategoryCreate,
    SubcategoryUpdate,
)
from shared.utils.schemas import CategoryOutput, MessageResponse, SubcategoryOutput


router = APIRouter(tags=["admin-categories"])


@router.get("/categories", response_model=list[CategoryOutput])
def list_categories(db: Session = Depends(get_db)) -> list[CategoryOutput]:
    """All live categories, including inactive ones."""
    return [CategoryOutput.model_validate(c) for c in CategoryService(db).list()]


@router.post("/categories", response_model=CategoryOutput, status_code=status.HTTP_201_CREATED)
def create_category(body: CategoryCreate, db: Session = Depends(get_db)) -> CategoryOutput:
    return CategoryOutput.model_validate(CategoryService(db).create(body))


@router.put("/categories/{category_id}", response_model=CategoryOutput)
def update_category(
    category_id: uuid.UUID,
    body: CategoryUpdate,
    db: Session = Depends(get_db),
) -> CategoryOutput:
    return CategoryOutput.model_validate(CategoryService(db).update(category_id, body))


@router.delete("/categories/{category_id}", response_model=MessageResponse)
def delete_category(category_id: uuid.UUID, db: Session = Depends(get_db)) -> MessageResponse:
    """Refused with 409 while live products use the category."""
    CategoryService(db).delete(category_id)
    return MessageResponse(message="Category deleted")


# =============================================================================
# Subcategories
# =============================================================================


@router.get("/subcategories", response_model=list[SubcategoryOutput])
def list_subcategories(
    category_id: uuid.UUID | None = None,
    db: Session = Depends(get_db),
) -> list[SubcategoryOutput]:
    return [SubcategoryOutput.model_validate(s) for s in SubcategoryService(db).list(category_id)]


@router.post("/subcategories", response_model=SubcategoryOutput, status_code=status.HTTP_201_CREATED)
def create_subcategory(body: SubcategoryCreate, db: Session = Depends(get_db)) -> SubcategoryOutput:
    """400 when the parent category does not exist."""
    return SubcategoryOutput.model_validate(SubcategoryService(db).create(body))


@router.put("/subcategories/{subcategory_id}", response_model=SubcategoryOutput)
def update_subcategory(
    subcategory_id: uuid.UUID,
    body: SubcategoryUpdate,
    db: Session = Depends(get_db),
) -> SubcategoryOutput:
    return SubcategoryOutput.model_validate(SubcategoryService(db).update(subcategory_id, body))


@router.delete("/subcategories/{subcategory_id}", response_model=MessageResponse)
def delete_subcategory(subcategory_id: uuid.UUID, db: Session = Depends(get_db)) -> MessageResponse:
    """Refused with 409 while live products use the subcategory."""
    SubcategoryService(db).delete(subcategory_id)
    return MessageResponse(message="Subcategory deleted")
