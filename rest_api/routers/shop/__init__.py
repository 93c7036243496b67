"""
Shopping routers - authenticated customer flows.
- /api/cart/* - Cart management
- /api/orders/* - Checkout, order history and status changes
"""

from .cart import router as cart_router
from .orders import router as orders_router

__all__ = ["cart_router", "orders_router"]
