"""
SQLAlchemy ORM Models Package.

All models are organized into domain-specific modules:
- base: Base class, TimestampMixin, new_entity()
- user: User, PasswordResetToken, RefreshToken
- franchise: Franchise, StoreHours, FranchiseStaff, FranchiseProduct
- catalog: Category, Subcategory, Product, ProductImage
- cart: CartItem
- order: Order, OrderItem
- loyalty: LoyaltyHistory
- promotion: Promotion, FranchisePromotion
"""

# Base classes
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, new_entity, utcnow, as_utc

# Users and auth tokens
from .user import User, PasswordResetToken, RefreshToken

# Franchises
from .franchise import Franchise, StoreHours, FranchiseStaff, FranchiseProduct

# Catalog
from .catalog import Category, Subcategory, Product, ProductImage

# Cart
from .cart import CartItem

# Orders
from .order import Order, OrderItem

# Loyalty
from .loyalty import LoyaltyHistory

# Promotions
from .promotion import Promotion, FranchisePromotion

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "new_entity",
    "utcnow",
    "as_utc",
    # Users
    "User",
    "PasswordResetToken",
    "RefreshToken",
    # Franchises
    "Franchise",
    "StoreHours",
    "FranchiseStaff",
    "FranchiseProduct",
    # Catalog
    "Category",
    "Subcategory",
    "Product",
    "ProductImage",
    # Cart
    "CartItem",
    # Orders
    "Order",
    "OrderItem",
    # Loyalty
    "LoyaltyHistory",
    # Promotions
    "Promotion",
    "FranchisePromotion",
]
