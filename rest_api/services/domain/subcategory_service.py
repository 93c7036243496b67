"""
Subcategory Domain Service.

A subcategory always hangs off a live category; names are unique within
their category. Deleting one still used by live products is refused.
"""

from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import Category, Product, Subcategory, new_entity
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.admin_schemas import SubcategoryCreate, SubcategoryUpdate
from shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    NotFoundError,
    ValidationError,
)

logger = get_logger(__name__)


class SubcategoryService:
    """Domain service for subcategories."""

    def __init__(self, db: Session):
        self._db = db

    def list(self, category_id: uuid.UUID | None = None) -> list[Subcategory]:
        query = (
            select(Subcategory)
            .where(Subcategory.deleted_at.is_(None))
            .options(selectinload(Subcategory.category))
        )
        if category_id is not None:
            query = query.where(Subcategory.category_id == category_id)
        return list(self._db.scalars(query.order_by(Subcategory.name)).all())

    def get(self, subcategory_id: uuid.UUID) -> Subcategory:
        subcategory = self._db.scalar(
            select(Subcategory).where(
                Subcategory.id == subcategory_id, Subcategory.deleted_at.is_(None)
            )
        )
        if subcategory is None:
            raise NotFoundError("Subcategory", subcategory_id)
        return subcategory

    def _require_category(self, category_id: uuid.UUID) -> None:
        exists = self._db.scalar(
            select(Category.id).where(Category.id == category_id, Category.deleted_at.is_(None))
        )
        if exists is None:
            raise ValidationError("Parent category not found", category_id=str(category_id))

    def _ensure_unique_name(
        self, category_id: uuid.UUID, name: str, exclude_id: uuid.UUID | None = None
    ) -> None:
        query = select(Subcategory.id).where(
            Subcategory.category_id == category_id,
            func.lower(Subcategory.name) == name.lower(),
            Subcategory.deleted_at.is_(None),
        )
        if exclude_id is not None:
            query = query.where(Subcategory.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Subcategory", name)

    def create(self, body: SubcategoryCreate) -> Subcategory:
        name = body.name.strip()
        self._require_category(body.category_id)
        self._ensure_unique_name(body.category_id, name)
        subcategory = new_entity(Subcategory, category_id=body.category_id, name=name)
        self._db.add(subcategory)
        safe_commit(self._db)
        self._db.refresh(subcategory)
        logger.info(
            "SUBCATEGORY_CREATED",
            subcategory_id=str(subcategory.id),
            category_id=str(body.category_id),
        )
        return subcategory

    def update(self, subcategory_id: uuid.UUID, body: SubcategoryUpdate) -> Subcategory:
        subcategory = self.get(subcategory_id)
        category_id = body.category_id or subcategory.category_id
        name = body.name.strip() if body.name else subcategory.name

        if category_id != subcategory.category_id:
            self._require_category(category_id)
            in_use = self._live_product_count(subcategory_id)
            if in_use:
                raise ConflictError(
                    f"Subcategory has {in_use} products and cannot change category",
                    subcategory_id=str(subcategory_id),
                )
        self._ensure_unique_name(category_id, name, exclude_id=subcategory.id)

        subcategory.category_id = category_id
        subcategory.name = name
        subcategory.touch()
        safe_commit(self._db)
        self._db.refresh(subcategory)
        logger.info("SUBCATEGORY_UPDATED", subcategory_id=str(subcategory_id))
        return subcategory

    def _live_product_count(self, subcategory_id: uuid.UUID) -> int:
        return self._db.scalar(
            select(func.count(Product.id)).where(
                Product.subcategory_id == subcategory_id, Product.deleted_at.is_(None)
            )
        ) or 0

    def delete(self, subcategory_id: uuid.UUID) -> None:
        subcategory = self.get(subcategory_id)
        in_use = self._live_product_count(subcategory_id)
        if in_use:
            raise ConflictError(
                f"Subcategory has {in_use} products and cannot be deleted",
                subcategory_id=str(subcategory_id),
            )
        subcategory.soft_delete()
        safe_commit(self._db)
        logger.info("SUBCATEGORY_DELETED", subcategory_id=str(subcategory_id))
