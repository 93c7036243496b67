"""
Franchise portal routers - /api/franchise/*
Owners and staff manage their own store: stock, prices, orders, hours,
team, promotions and catalog imports. Every route is scoped to the
franchise in the caller's token.
"""

from fastapi import APIRouter

from .imports import router as imports_router
from .portal import router as portal_router
from .promotions import router as promotions_router

router = APIRouter()
router.include_router(portal_router)
router.include_router(promotions_router)
router.include_router(imports_router)

__all__ = ["router"]
