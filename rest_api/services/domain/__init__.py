"""
Domain Services - Clean Architecture Application Layer.

Services contain business logic and own their transactions. Routers stay
thin: parse the request, call one service method, shape the response.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import CategoryService

    # In router
    service = CategoryService(db)
    categories = service.list(active_only=True)
"""

from .auth_service import AuthService, FORGOT_PASSWORD_MESSAGE
from .cart_service import CartService
from .category_service import CategoryService
from .franchise_service import FranchiseService
from .order_service import OrderService, format_order_number, points_for_total
from .product_service import ProductService
from .promotion_service import PromotionService
from .subcategory_service import SubcategoryService

__all__ = [
    "AuthService",
    "FORGOT_PASSWORD_MESSAGE",
    "CartService",
    "CategoryService",
    "FranchiseService",
    "OrderService",
    "format_order_number",
    "points_for_total",
    "ProductService",
    "PromotionService",
    "SubcategoryService",
]
