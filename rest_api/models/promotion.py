"""
Promotion Models: Promotion, FranchisePromotion.

Promotion banners are shown storefront-wide; FranchisePromotion rows
belong to one franchise. Both are live while is_active is set and the
current time falls inside the optional start/end window.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from .franchise import Franchise


class PromotionFieldsMixin:
    """Banner content and schedule shared by both promotion kinds."""

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    product_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Promotion(PromotionFieldsMixin, UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Storefront-wide promotion banner."""

    __tablename__ = "promotion"

    def __repr__(self) -> str:
        return f"<Promotion(id={self.id}, title='{self.title}')>"


class FranchisePromotion(PromotionFieldsMixin, UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Promotion run by a single franchise."""

    __tablename__ = "franchise_promotion"

    franchise_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("franchise.id", ondelete="CASCADE"), nullable=False, index=True
    )

    franchise: Mapped["Franchise"] = relationship()

    def __repr__(self) -> str:
        return f"<FranchisePromotion(id={self.id}, franchise_id={self.franchise_id})>"
