"""
Category Domain Service.

Categories group catalog products. Deleting a category that still holds
live products is refused.
"""

from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rest_api.models import Category, Product, new_entity
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.admin_schemas import CategoryCreate, CategoryUpdate
from shared.utils.exceptions import ConflictError, DuplicateEntityError, NotFoundError
from shared.utils.validators import slugify

logger = get_logger(__name__)


class CategoryService:
    """Domain service for catalog categories."""

    def __init__(self, db: Session):
        self._db = db

    def list(self, active_only: bool = False) -> list[Category]:
        query = select(Category).where(Category.deleted_at.is_(None))
        if active_only:
            query = query.where(Category.is_active.is_(True))
        return list(self._db.scalars(query.order_by(Category.name)).all())

    def get(self, category_id: uuid.UUID) -> Category:
        category = self._db.scalar(
            select(Category).where(Category.id == category_id, Category.deleted_at.is_(None))
        )
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    def _ensure_unique_name(self, name: str, exclude_id: uuid.UUID | None = None) -> None:
        query = select(Category.id).where(
            func.lower(Category.name) == name.lower(), Category.deleted_at.is_(None)
        )
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Category", name)

    def _ensure_unique_slug(self, slug: str | None, exclude_id: uuid.UUID | None = None) -> None:
        if not slug:
            return
        query = select(Category.id).where(Category.slug == slug)
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Category", slug)

    def create(self, body: CategoryCreate) -> Category:
        name = body.name.strip()
        self._ensure_unique_name(name)
        slug = slugify(body.slug or name) or None
        self._ensure_unique_slug(slug)
        category = new_entity(
            Category,
            name=name,
            slug=slug,
            description=body.description,
            image_url=body.image_url,
            is_active=body.is_active,
        )
        self._db.add(category)
        safe_commit(self._db)
        self._db.refresh(category)
        logger.info("CATEGORY_CREATED", category_id=str(category.id), name=name)
        return category

    def update(self, category_id: uuid.UUID, body: CategoryUpdate) -> Category:
        category = self.get(category_id)
        changes = body.model_dump(exclude_unset=True)
        if changes.get("name"):
            changes["name"] = changes["name"].strip()
            self._ensure_unique_name(changes["name"], exclude_id=category.id)
        if changes.get("slug") is not None:
            changes["slug"] = slugify(changes["slug"]) or None
            self._ensure_unique_slug(changes["slug"], exclude_id=category.id)

        for key, value in changes.items():
            if value is None and key != "slug":
                continue
            setattr(category, key, value)
        category.touch()
        safe_commit(self._db)
        self._db.refresh(category)
        logger.info("CATEGORY_UPDATED", category_id=str(category_id), fields=list(changes))
        return category

    def delete(self, category_id: uuid.UUID) -> None:
        category = self.get(category_id)
        in_use = self._db.scalar(
            select(func.count(Product.id)).where(
                Product.category_id == category_id, Product.deleted_at.is_(None)
            )
        ) or 0
        if in_use:
            raise ConflictError(
                f"Category has {in_use} products and cannot be deleted",
                category_id=str(category_id),
            )
        category.soft_delete()
        safe_commit(self._db)
        logger.info("CATEGORY_DELETED", category_id=str(category_id))
