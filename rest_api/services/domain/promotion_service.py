"""
Promotion Domain Service.

Storefront promotions are managed by admins; franchise promotions by the
owners and staff of that franchise. Customers only ever see live ones:
active, with the current time inside the optional start/end window.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import FranchisePromotion, Promotion, as_utc, new_entity, utcnow
from rest_api.services.domain.product_service import purge_stored_images
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.infrastructure.storage import StorageClient
from shared.utils.admin_schemas import PromotionCreate, PromotionUpdate
from shared.utils.exceptions import FranchiseAccessError, NotFoundError, ValidationError

logger = get_logger(__name__)

AnyPromotion = Promotion | FranchisePromotion


def is_live(promotion: AnyPromotion, now: datetime | None = None) -> bool:
    """Active and inside its schedule. Open ends never expire."""
    if not promotion.is_active:
        return False
    now = now or utcnow()
    start = as_utc(promotion.start_date)
    end = as_utc(promotion.end_date)
    if start is not None and start > now:
        return False
    if end is not None and end < now:
        return False
    return True


def _check_window(start: datetime | None, end: datetime | None) -> None:
    if start is not None and end is not None and as_utc(end) < as_utc(start):
        raise ValidationError("end_date must not be before start_date")


class PromotionService:
    """
    Service for storefront and franchise promotions.

    Every method takes an optional franchise_id: None addresses the
    storefront promotions, a franchise id addresses that franchise's own.

    Usage:
        service = PromotionService(db, storage)
        banners = service.list_live()
        promo = service.create(body, franchise_id=claims.franchise_id)
    """

    def __init__(self, db: Session, storage: StorageClient | None = None):
        self._db = db
        self._storage = storage

    @staticmethod
    def _model(franchise_id: uuid.UUID | None) -> type[AnyPromotion]:
        return Promotion if franchise_id is None else FranchisePromotion

    def _query(self, franchise_id: uuid.UUID | None):
        model = self._model(franchise_id)
        query = select(model).where(model.deleted_at.is_(None))
        if franchise_id is not None:
            query = query.where(FranchisePromotion.franchise_id == franchise_id)
        return query

    # =========================================================================
    # Queries
    # =========================================================================

    def list_all(self, franchise_id: uuid.UUID | None = None) -> list[AnyPromotion]:
        """Every promotion, inactive and expired included, newest first."""
        model = self._model(franchise_id)
        query = self._query(franchise_id).order_by(model.created_at.desc())
        return list(self._db.scalars(query).all())

    def list_live(self, franchise_id: uuid.UUID | None = None) -> list[AnyPromotion]:
        """Promotions customers may see right now, newest first."""
        model = self._model(franchise_id)
        query = (
            self._query(franchise_id)
            .where(model.is_active.is_(True))
            .order_by(model.created_at.desc())
        )
        now = utcnow()
        return [p for p in self._db.scalars(query).all() if is_live(p, now)]

    def get(self, promotion_id: uuid.UUID, franchise_id: uuid.UUID | None = None) -> AnyPromotion:
        """
        Load one promotion.

        With a franchise_id, a promotion of another franchise raises
        FranchiseAccessError.
        """
        model = self._model(franchise_id)
        promotion = self._db.scalar(
            select(model).where(model.id == promotion_id, model.deleted_at.is_(None))
        )
        if promotion is None:
            raise NotFoundError("Promotion", promotion_id)
        if franchise_id is not None and promotion.franchise_id != franchise_id:
            raise FranchiseAccessError(promotion.franchise_id, promotion_id=str(promotion_id))
        return promotion

    def get_live(self, promotion_id: uuid.UUID) -> Promotion:
        """A storefront promotion, hidden (404) unless live."""
        promotion = self.get(promotion_id)
        if not is_live(promotion):
            raise NotFoundError("Promotion", promotion_id)
        return promotion

    # =========================================================================
    # Commands
    # =========================================================================

    def create(self, body: PromotionCreate, franchise_id: uuid.UUID | None = None) -> AnyPromotion:
        start, end = as_utc(body.start_date), as_utc(body.end_date)
        _check_window(start, end)

        fields = dict(
            title=body.title.strip(),
            description=body.description,
            image_url=body.image_url,
            product_url=body.product_url,
            is_active=body.is_active,
            start_date=start,
            end_date=end,
        )
        if franchise_id is not None:
            fields["franchise_id"] = franchise_id
        promotion = new_entity(self._model(franchise_id), **fields)
        self._db.add(promotion)
        safe_commit(self._db)
        self._db.refresh(promotion)
        logger.info(
            "PROMOTION_CREATED",
            promotion_id=str(promotion.id),
            franchise_id=str(franchise_id) if franchise_id else None,
        )
        return promotion

    def update(
        self,
        promotion_id: uuid.UUID,
        body: PromotionUpdate,
        franchise_id: uuid.UUID | None = None,
    ) -> AnyPromotion:
        promotion = self.get(promotion_id, franchise_id)
        changes = body.model_dump(exclude_unset=True)
        for key in ("start_date", "end_date"):
            if key in changes:
                changes[key] = as_utc(changes[key])
        # Null only clears the schedule; other fields keep their value
        changes = {
            key: value
            for key, value in changes.items()
            if value is not None or key in ("start_date", "end_date")
        }
        if "title" in changes:
            changes["title"] = changes["title"].strip()

        _check_window(
            changes.get("start_date", promotion.start_date),
            changes.get("end_date", promotion.end_date),
        )

        old_image = promotion.image_url
        for key, value in changes.items():
            setattr(promotion, key, value)
        promotion.touch()
        safe_commit(self._db)
        self._db.refresh(promotion)

        if old_image and old_image != promotion.image_url:
            purge_stored_images(self._db, self._storage, [old_image])
        logger.info("PROMOTION_UPDATED", promotion_id=str(promotion_id), fields=list(changes))
        return promotion

    def delete(self, promotion_id: uuid.UUID, franchise_id: uuid.UUID | None = None) -> None:
        """Soft delete, then drop the banner image from storage."""
        promotion = self.get(promotion_id, franchise_id)
        image_url = promotion.image_url
        promotion.soft_delete()
        safe_commit(self._db)

        if image_url:
            purge_stored_images(self._db, self._storage, [image_url])
        logger.info("PROMOTION_DELETED", promotion_id=str(promotion_id))
