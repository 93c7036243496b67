"""
Shared Pydantic schemas used across the application.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from shared.config.constants import Limits
from shared.utils.validators import split_image_urls


# =============================================================================
# Common Types
# =============================================================================

RoleName = Literal["customer", "franchise_owner", "franchise_staff", "admin"]
OrderStatusName = Literal[
    "pending", "confirmed", "preparing", "ready", "out_for_delivery", "delivered", "cancelled"
]
JobStatusName = Literal["pending", "processing", "completed", "failed"]
StaffRoleName = Literal["manager", "staff"]


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Authentication Schemas
# =============================================================================


class SignupRequest(BaseModel):
    """Customer signup request body."""

    email: EmailStr
    password: str = Field(min_length=Limits.MIN_PASSWORD_LENGTH, max_length=128)
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    phone: str = Field(default="", max_length=50)


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(min_length=1)


class RefreshTokenRequest(BaseModel):
    """Refresh token request body."""

    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=Limits.MIN_PASSWORD_LENGTH, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=Limits.MIN_PASSWORD_LENGTH, max_length=128)


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    phone: str | None = Field(default=None, max_length=50)


class RedeemPointsRequest(BaseModel):
    points: int = Field(ge=1)
    description: str = Field(default="", max_length=255)


class UserOutput(BaseModel):
    """User information included in auth responses."""

    id: uuid.UUID
    email: str
    name: str
    phone: str
    role: RoleName
    franchise_id: uuid.UUID | None = None
    loyalty_points: int
    is_blocked: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Signup/login response with both tokens."""

    token: str
    refresh_token: str
    user: UserOutput


class TokenResponse(BaseModel):
    token: str
    refresh_token: str


class LoyaltyHistoryOutput(BaseModel):
    id: uuid.UUID
    points: int
    type: str
    description: str
    order_id: uuid.UUID | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class LoyaltyBalanceOutput(BaseModel):
    loyalty_points: int
    history: list[LoyaltyHistoryOutput] = []


# =============================================================================
# Catalog Schemas
# =============================================================================


class ProductImageOutput(BaseModel):
    id: uuid.UUID
    image_url: str
    is_primary: bool

    class Config:
        from_attributes = True


class ProductView(BaseModel):
    """Product as a customer sees it, with the effective price applied."""

    id: uuid.UUID
    sku: str
    item_name: str
    short_description: str
    long_description: str
    category_id: uuid.UUID
    subcategory_id: uuid.UUID | None = None
    brand: str
    pack_size: str
    unit_of_measure: str
    retail_price: float
    promotion_price: float | None = None
    promotion_start: datetime | None = None
    promotion_end: datetime | None = None
    promotion_active: bool
    current_price: float
    stock_quantity: int
    is_available: bool
    is_gluten_free: bool
    is_vegetarian: bool
    is_vegan: bool
    is_age_restricted: bool
    minimum_age: int | None = None
    allergen_info: str
    image_url: str
    images: list[ProductImageOutput] = []


class ProductListResponse(BaseModel):
    items: list[ProductView]


class CategoryOutput(BaseModel):
    id: uuid.UUID
    name: str
    slug: str | None = None
    description: str
    image_url: str
    is_active: bool

    class Config:
        from_attributes = True


class SubcategoryOutput(BaseModel):
    id: uuid.UUID
    category_id: uuid.UUID
    name: str
    category_name: str = ""

    class Config:
        from_attributes = True


# =============================================================================
# Promotion Schemas
# =============================================================================


class PromotionOutput(BaseModel):
    id: uuid.UUID
    franchise_id: uuid.UUID | None = None
    title: str
    description: str
    image_url: str
    product_url: str
    is_active: bool
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# Franchise Schemas
# =============================================================================


class StoreHoursOutput(BaseModel):
    day_of_week: int
    open_time: str
    close_time: str
    is_closed: bool

    class Config:
        from_attributes = True


class StoreStatusOutput(BaseModel):
    is_open: bool
    message: str


class FranchiseOutput(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    owner_id: uuid.UUID
    address: str
    city: str
    post_code: str
    latitude: float
    longitude: float
    delivery_radius: float
    delivery_fee: float
    free_delivery_min: float
    phone: str
    email: str
    is_active: bool
    store_hours: list[StoreHoursOutput] = []

    class Config:
        from_attributes = True


class NearbyFranchiseOutput(BaseModel):
    """A franchise that delivers to the caller's location."""

    franchise: FranchiseOutput
    distance_km: float
    delivery_time: str
    store_status: StoreStatusOutput


# =============================================================================
# Cart Schemas
# =============================================================================


class CartAddRequest(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)
    # Stock is checked against this franchise's listing when given
    franchise_id: uuid.UUID | None = None


class CartUpdateRequest(BaseModel):
    quantity: int = Field(ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)


class CartItemOutput(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    item_name: str
    sku: str
    image_url: str
    price: float
    quantity: int
    line_total: float
    stock_quantity: int


class CartOutput(BaseModel):
    items: list[CartItemOutput]
    subtotal: float
    item_count: int


# =============================================================================
# Order Schemas
# =============================================================================


class CreateOrderRequest(BaseModel):
    """Checkout request. Location picks the nearest delivering franchise."""

    delivery_address: str = Field(min_length=1, max_length=500)
    payment_method: str = Field(min_length=1, max_length=40)
    customer_lat: float | None = Field(default=None, ge=-90, le=90)
    customer_lng: float | None = Field(default=None, ge=-180, le=180)
    franchise_id: uuid.UUID | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatusName


class OrderItemOutput(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID | None = None
    product_name: str
    product_sku: str
    image_url: str
    quantity: int
    price: float
    line_total: float

    class Config:
        from_attributes = True


class OrderOutput(BaseModel):
    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    franchise_id: uuid.UUID | None = None
    status: OrderStatusName
    subtotal: float
    delivery_fee: float
    total: float
    delivery_address: str
    payment_method: str
    points_earned: int
    customer_lat: float | None = None
    customer_lng: float | None = None
    items: list[OrderItemOutput] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    order: OrderOutput


class OrderListResponse(BaseModel):
    orders: list[OrderOutput]


class OrderTransitionsResponse(BaseModel):
    transitions: dict[str, list[str]]


# =============================================================================
# Batch Import Schemas
# =============================================================================


class ProductImportItem(BaseModel):
    """
    One row of a batch product import.

    Row-level rules (required name, minimum prices, resolvable category)
    are checked by the import engine so a bad row is reported in the job
    instead of rejecting the whole request.
    """

    id: str | None = None
    sku: str = ""
    item_name: str = ""
    short_description: str = ""
    long_description: str = ""
    cost_price: float = 0
    retail_price: float = 0
    promotion_price: float | None = None
    promotion_start: str | None = None
    promotion_end: str | None = None
    gross_margin: float = 0
    staff_discount: float = 0
    tax_rate: float = 0
    stock_quantity: int = 0
    reorder_level: int = 0
    shelf_location: str = ""
    weight_volume: float = 0
    unit_of_measure: str = ""
    expiry_date: str | None = None
    category_id: str = ""
    subcategory_id: str | None = None
    brand: str = ""
    supplier: str = ""
    country_of_origin: str = ""
    is_gluten_free: bool = False
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_age_restricted: bool = False
    minimum_age: int | None = None
    allergen_info: str = ""
    storage_type: str = ""
    is_own_brand: bool = False
    online_visible: bool = True
    status: str = "active"
    barcode: str = ""
    batch_number: str = ""
    pack_size: str = ""
    notes: str = ""
    image_urls: list[str] = []
    images_provided: bool | None = None
    franchise_ids: list[str] = []
    delete: bool = False

    @field_validator("image_urls", mode="before")
    @classmethod
    def _split_image_urls(cls, value):
        return split_image_urls(value)

    @field_validator("franchise_ids", mode="before")
    @classmethod
    def _split_franchise_ids(cls, value):
        return split_image_urls(value)


class ProductImportRequest(BaseModel):
    products: list[ProductImportItem] = Field(min_length=1, max_length=Limits.MAX_BATCH_PRODUCTS)
    delete_missing: bool = False


class BatchImportAccepted(BaseModel):
    job_id: uuid.UUID
    status: JobStatusName
    total: int


class JobErrorOutput(BaseModel):
    row: int
    product: str
    fields: dict[str, str]

    class Config:
        from_attributes = True


class BatchJobOutput(BaseModel):
    id: uuid.UUID
    status: JobStatusName
    progress: int
    total: int
    processed: int
    created: int
    updated: int
    deleted: int
    failed: int
    errors: list[JobErrorOutput]
    started_at: datetime
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# Upload Schemas
# =============================================================================


class UploadResponse(BaseModel):
    url: str
    path: str
