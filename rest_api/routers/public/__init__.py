"""
Public routers - No authentication required.
- /api/products, /api/categories, /api/subcategories - Catalog
- /api/promotions - Storefront promotion banners
- /api/franchises/* - Store lookup by location, franchise promotions
- /api/health - Health check
"""

from .catalog import router as catalog_router
from .franchises import router as franchises_router
from .health import router as health_router
from .promotions import router as promotions_router

__all__ = ["catalog_router", "franchises_router", "health_router", "promotions_router"]
