"""
Pydantic schemas for admin and franchise-portal endpoints.
Centralized to avoid circular imports and improve maintainability.

This file contains the request/response schemas used by the management
routers (admin and franchise portal).
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from shared.config.constants import Limits
from shared.utils.schemas import (
    OrderOutput,
    ProductImageOutput,
    RoleName,
    StaffRoleName,
    StoreHoursOutput,
)


# =============================================================================
# Product Schemas
# =============================================================================


class ProductFields(BaseModel):
    """Editable catalog fields shared by create and update."""

    short_description: str = ""
    long_description: str = ""
    promotion_price: float | None = Field(default=None, gt=0)
    promotion_start: datetime | None = None
    promotion_end: datetime | None = None
    gross_margin: float = 0
    staff_discount: float = Field(default=0, ge=0)
    tax_rate: float = Field(default=0, ge=0)
    batch_number: str = ""
    barcode: str | None = None
    stock_quantity: int = Field(default=0, ge=0)
    reorder_level: int = Field(default=0, ge=0)
    shelf_location: str = ""
    weight_volume: float = Field(default=0, ge=0)
    unit_of_measure: str = ""
    expiry_date: datetime | None = None
    pack_size: str = ""
    subcategory_id: uuid.UUID | None = None
    brand: str = ""
    supplier: str = ""
    country_of_origin: str = ""
    is_gluten_free: bool = False
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_age_restricted: bool = False
    minimum_age: int | None = Field(default=None, ge=0)
    allergen_info: str = ""
    storage_type: str = ""
    is_own_brand: bool = False
    online_visible: bool = True
    status: Literal["active", "inactive"] = "active"
    notes: str = ""


class ProductCreate(ProductFields):
    sku: str = Field(default="", max_length=100)
    item_name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    cost_price: float = Field(ge=0)
    retail_price: float = Field(gt=0)
    category_id: uuid.UUID
    image_urls: list[str] = []
    franchise_ids: list[uuid.UUID] = []


class ProductUpdate(BaseModel):
    """Partial update: only fields present in the body change."""

    sku: str | None = Field(default=None, min_length=1, max_length=100)
    item_name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    short_description: str | None = None
    long_description: str | None = None
    cost_price: float | None = Field(default=None, ge=0)
    retail_price: float | None = Field(default=None, gt=0)
    promotion_price: float | None = Field(default=None, gt=0)
    promotion_start: datetime | None = None
    promotion_end: datetime | None = None
    gross_margin: float | None = None
    staff_discount: float | None = Field(default=None, ge=0)
    tax_rate: float | None = Field(default=None, ge=0)
    batch_number: str | None = None
    barcode: str | None = None
    stock_quantity: int | None = Field(default=None, ge=0)
    reorder_level: int | None = Field(default=None, ge=0)
    shelf_location: str | None = None
    weight_volume: float | None = Field(default=None, ge=0)
    unit_of_measure: str | None = None
    expiry_date: datetime | None = None
    pack_size: str | None = None
    category_id: uuid.UUID | None = None
    subcategory_id: uuid.UUID | None = None
    brand: str | None = None
    supplier: str | None = None
    country_of_origin: str | None = None
    is_gluten_free: bool | None = None
    is_vegetarian: bool | None = None
    is_vegan: bool | None = None
    is_age_restricted: bool | None = None
    minimum_age: int | None = Field(default=None, ge=0)
    allergen_info: str | None = None
    storage_type: str | None = None
    is_own_brand: bool | None = None
    online_visible: bool | None = None
    status: Literal["active", "inactive"] | None = None
    notes: str | None = None
    image_urls: list[str] | None = None
    franchise_ids: list[uuid.UUID] | None = None


class ProductOutput(BaseModel):
    """Full product record for catalog management."""

    id: uuid.UUID
    sku: str
    item_name: str
    short_description: str
    long_description: str
    cost_price: float
    retail_price: float
    promotion_price: float | None = None
    promotion_start: datetime | None = None
    promotion_end: datetime | None = None
    gross_margin: float
    staff_discount: float
    tax_rate: float
    batch_number: str
    barcode: str | None = None
    stock_quantity: int
    reorder_level: int
    shelf_location: str
    weight_volume: float
    unit_of_measure: str
    expiry_date: datetime | None = None
    pack_size: str
    category_id: uuid.UUID
    subcategory_id: uuid.UUID | None = None
    brand: str
    supplier: str
    country_of_origin: str
    is_gluten_free: bool
    is_vegetarian: bool
    is_vegan: bool
    is_age_restricted: bool
    minimum_age: int | None = None
    allergen_info: str
    storage_type: str
    is_own_brand: bool
    online_visible: bool
    status: str
    notes: str
    images: list[ProductImageOutput] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProductListOutput(BaseModel):
    items: list[ProductOutput]
    total: int


class ProductExportRow(ProductOutput):
    """Product as exported for spreadsheets. Franchise columns are newline separated."""

    category_name: str = ""
    subcategory_name: str = ""
    franchise_names: str = ""
    franchise_ids: str = ""


# =============================================================================
# Category Schemas
# =============================================================================


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    slug: str | None = None
    description: str = ""
    image_url: str = ""
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    slug: str | None = None
    description: str | None = None
    image_url: str | None = None
    is_active: bool | None = None


class SubcategoryCreate(BaseModel):
    category_id: uuid.UUID
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)


class SubcategoryUpdate(BaseModel):
    category_id: uuid.UUID | None = None
    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)


# =============================================================================
# Promotion Schemas
# =============================================================================


class PromotionCreate(BaseModel):
    """Promotion banner. Upload the image first and pass its URL."""

    title: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    description: str = ""
    image_url: str = ""
    product_url: str = ""
    is_active: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None


class PromotionUpdate(BaseModel):
    """Omitted fields are kept. Null clears start_date or end_date."""

    title: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    description: str | None = None
    image_url: str | None = None
    product_url: str | None = None
    is_active: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


# =============================================================================
# Franchise Schemas
# =============================================================================


class FranchiseCreate(BaseModel):
    """New franchise plus its owner account (created when the email is new)."""

    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    slug: str | None = None
    owner_email: EmailStr
    owner_name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    owner_password: str | None = Field(default=None, min_length=Limits.MIN_PASSWORD_LENGTH)
    address: str = ""
    city: str = ""
    post_code: str = ""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    delivery_radius: float = Field(default=5.0, gt=0)
    delivery_fee: float = Field(default=4.99, ge=0)
    free_delivery_min: float = Field(default=50.0, ge=0)
    phone: str = ""
    email: str = ""


class FranchiseUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    address: str | None = None
    city: str | None = None
    post_code: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    delivery_radius: float | None = Field(default=None, gt=0)
    delivery_fee: float | None = Field(default=None, ge=0)
    free_delivery_min: float | None = Field(default=None, ge=0)
    phone: str | None = None
    email: str | None = None
    is_active: bool | None = None


# =============================================================================
# User Schemas
# =============================================================================


class UserAdminUpdate(BaseModel):
    role: RoleName | None = None
    is_blocked: bool | None = None


class UserListOutput(BaseModel):
    users: list["UserAdminOutput"]
    total: int


class UserAdminOutput(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    phone: str
    role: str
    franchise_id: uuid.UUID | None = None
    loyalty_points: int
    is_blocked: bool
    created_at: datetime

    class Config:
        from_attributes = True


UserListOutput.model_rebuild()


# =============================================================================
# Franchise Portal Schemas
# =============================================================================


class FranchiseProductOutput(BaseModel):
    """A product as listed in one franchise, with overrides and effective price."""

    product_id: uuid.UUID
    sku: str
    item_name: str
    category_id: uuid.UUID
    image_url: str
    retail_price: float
    retail_price_override: float | None = None
    promotion_price_override: float | None = None
    promotion_start_override: datetime | None = None
    promotion_end_override: datetime | None = None
    current_price: float
    promotion_active: bool
    stock_quantity: int
    reorder_level: int
    shelf_location: str
    is_available: bool
    low_stock: bool


class FranchiseProductListOutput(BaseModel):
    items: list[FranchiseProductOutput]
    total: int


class StockUpdateRequest(BaseModel):
    stock_quantity: int = Field(ge=0)
    reorder_level: int | None = Field(default=None, ge=0)
    shelf_location: str | None = None
    is_available: bool | None = None


class PricingUpdateRequest(BaseModel):
    """Franchise price overrides. Null clears an override."""

    retail_price_override: float | None = Field(default=None, gt=0)
    promotion_price_override: float | None = Field(default=None, gt=0)
    promotion_start_override: datetime | None = None
    promotion_end_override: datetime | None = None


class StoreHoursEntry(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    open_time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    close_time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    is_closed: bool = False


class StoreHoursUpdate(BaseModel):
    hours: list[StoreHoursEntry] = Field(min_length=1, max_length=7)


class StoreHoursListOutput(BaseModel):
    hours: list[StoreHoursOutput]


class StaffInviteRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    role: StaffRoleName = "staff"


class StaffOutput(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    email: str
    name: str
    role: str
    created_at: datetime


# =============================================================================
# Dashboard Schemas
# =============================================================================


class DashboardOutput(BaseModel):
    """Back-office headline figures, optionally for one franchise."""

    total_products: int
    total_orders: int
    total_revenue: float
    recent_revenue: float
    pending_orders: int
    total_categories: int
    total_franchises: int
    recent_orders: list[OrderOutput]
