"""
Order Models: Order, OrderItem.

OrderItems snapshot the product name, SKU, image and price at checkout so
orders survive later catalog changes or deletion.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderStatus

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from .franchise import Franchise
    from .user import User


class Order(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    Customer order. total = subtotal + delivery_fee.
    Status moves only along ORDER_TRANSITIONS.
    """

    __tablename__ = "app_order"

    order_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("app_user.id"), nullable=False, index=True
    )
    franchise_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("franchise.id"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=OrderStatus.PENDING.value, index=True
    )
    subtotal: Mapped[float] = mapped_column(Float, nullable=False)
    delivery_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total: Mapped[float] = mapped_column(Float, nullable=False)
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payment_method: Mapped[str] = mapped_column(String(40), nullable=False, default="")
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    customer_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    customer_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    user: Mapped["User"] = relationship()
    franchise: Mapped[Optional["Franchise"]] = relationship()
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}')>"


class OrderItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Immutable snapshot of one purchased product line."""

    __tablename__ = "order_item"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("app_order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("product.id", ondelete="SET NULL"), nullable=True, index=True
    )
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_sku: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_quantity"),
    )

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)
