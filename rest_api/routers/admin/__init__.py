"""
Admin API router - combines all admin sub-routers.

This module provides a single router that includes all admin endpoints
organized by domain:

- products: Product CRUD, bulk import and export
- jobs: Batch job progress
- categories: Category and subcategory CRUD
- promotions: Storefront promotion CRUD
- franchises: Franchise creation and settings
- users: Role and block management
- dashboard: Order and catalog figures
- uploads: Product and promotion images

All routes are prefixed with /api/admin and require the admin role.
"""

from fastapi import APIRouter, Depends

from shared.security.auth import require_admin

from .products import router as products_router
from .jobs import router as jobs_router
from .categories import router as categories_router
from .promotions import router as promotions_router
from .franchises import router as franchises_router
from .users import router as users_router
from .dashboard import router as dashboard_router
from .uploads import router as uploads_router


router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])

# Catalog
router.include_router(products_router)
router.include_router(jobs_router)
router.include_router(categories_router)
router.include_router(promotions_router)

# Franchises and accounts
router.include_router(franchises_router)
router.include_router(users_router)

# Reporting
router.include_router(dashboard_router)

# Media
router.include_router(uploads_router)


__all__ = ["router"]
