"""
Catalog Models: Category, Subcategory, Product, ProductImage.

Product is the global catalog entry; per-franchise stock and pricing live
in FranchiseProduct.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import ProductStatus

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Category(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Top-level product category."""

    __tablename__ = "category"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    subcategories: Mapped[list["Subcategory"]] = relationship(back_populates="category")


class Subcategory(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Second-level category."""

    __tablename__ = "subcategory"

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("category.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    category: Mapped["Category"] = relationship(back_populates="subcategories")

    @property
    def category_name(self) -> str:
        return self.category.name if self.category is not None else ""


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    Global catalog product.

    Invariants (see services.product_service.validate_product_invariants):
    retail_price > 0, cost_price >= 0, age-restricted products carry a
    minimum_age >= 1, and promotion_price < retail_price when set.
    """

    __tablename__ = "product"

    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    short_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    long_description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Pricing
    cost_price: Mapped[float] = mapped_column(Float, nullable=False)
    retail_price: Mapped[float] = mapped_column(Float, nullable=False)
    promotion_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    promotion_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    promotion_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Margin and tax, entered manually
    gross_margin: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    staff_discount: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    tax_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    # Identifiers
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, unique=True)

    # Inventory
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shelf_location: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    # Attributes
    weight_volume: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pack_size: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # Classification
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("category.id"), nullable=False, index=True
    )
    subcategory_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("subcategory.id"), nullable=True, index=True
    )
    brand: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    supplier: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    country_of_origin: Mapped[str] = mapped_column(String(80), nullable=False, default="")

    # Dietary and restrictions
    is_gluten_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_vegetarian: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_vegan: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_age_restricted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    minimum_age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Additional info
    allergen_info: Mapped[str] = mapped_column(Text, nullable=False, default="")
    storage_type: Mapped[str] = mapped_column(String(40), nullable=False, default="")
    is_own_brand: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    online_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProductStatus.ACTIVE, index=True
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    deleted_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    category: Mapped["Category"] = relationship()
    subcategory: Mapped[Optional["Subcategory"]] = relationship()
    images: Mapped[list["ProductImage"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.created_at",
    )

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock"),
    )

    @property
    def primary_image_url(self) -> str:
        for image in self.images:
            if image.is_primary:
                return image.image_url
        return self.images[0].image_url if self.images else ""

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, sku='{self.sku}')>"


class ProductImage(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Stored image for a product. At most one is primary."""

    __tablename__ = "product_image"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    product: Mapped["Product"] = relationship(back_populates="images")
