"""
Franchise Models: Franchise, StoreHours, FranchiseStaff, FranchiseProduct.

A Franchise owns its StoreHours and FranchiseProduct rows (cascade on delete).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import StaffRole

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from .catalog import Product
    from .user import User

DEFAULT_OPEN_TIME = "09:00"
DEFAULT_CLOSE_TIME = "21:00"


class Franchise(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Geographically scoped storefront with its own stock, pricing and delivery policy."""

    __tablename__ = "franchise"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("app_user.id"), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    city: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    post_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    delivery_radius: Mapped[float] = mapped_column(Float, nullable=False, default=5.0)
    delivery_fee: Mapped[float] = mapped_column(Float, nullable=False, default=4.99)
    free_delivery_min: Mapped[float] = mapped_column(Float, nullable=False, default=50.0)
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    owner: Mapped["User"] = relationship(foreign_keys=[owner_id])
    store_hours: Mapped[list["StoreHours"]] = relationship(
        back_populates="franchise",
        cascade="all, delete-orphan",
        order_by="StoreHours.day_of_week",
    )
    staff: Mapped[list["FranchiseStaff"]] = relationship(
        back_populates="franchise", cascade="all, delete-orphan"
    )
    products: Mapped[list["FranchiseProduct"]] = relationship(
        back_populates="franchise", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Franchise(id={self.id}, slug='{self.slug}')>"


class StoreHours(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Opening hours for one weekday (0=Sunday .. 6=Saturday)."""

    __tablename__ = "store_hours"

    franchise_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("franchise.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    open_time: Mapped[str] = mapped_column(String(5), nullable=False, default=DEFAULT_OPEN_TIME)
    close_time: Mapped[str] = mapped_column(String(5), nullable=False, default=DEFAULT_CLOSE_TIME)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    franchise: Mapped["Franchise"] = relationship(back_populates="store_hours")

    __table_args__ = (
        UniqueConstraint("franchise_id", "day_of_week", name="uq_store_hours_franchise_day"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_store_hours_day"),
    )


class FranchiseStaff(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Membership of a user in a franchise team. A user belongs to at most one team."""

    __tablename__ = "franchise_staff"

    franchise_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("franchise.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("app_user.id"), nullable=False, unique=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=StaffRole.STAFF)

    franchise: Mapped["Franchise"] = relationship(back_populates="staff")
    user: Mapped["User"] = relationship()


class FranchiseProduct(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    Per-franchise overlay on a global Product: stock plus optional
    price and promotion overrides. Absent overrides fall back to the product.
    """

    __tablename__ = "franchise_product"

    franchise_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("franchise.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("product.id"), nullable=False, index=True
    )
    retail_price_override: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    promotion_price_override: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    promotion_start_override: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    promotion_end_override: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    shelf_location: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    franchise: Mapped["Franchise"] = relationship(back_populates="products")
    product: Mapped["Product"] = relationship()

    __table_args__ = (
        UniqueConstraint("franchise_id", "product_id", name="uq_franchise_product"),
        CheckConstraint("stock_quantity >= 0", name="ck_franchise_product_stock"),
    )
