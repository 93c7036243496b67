"""
Shared dependencies for admin routers.

Every admin route requires the admin role; the dependency is applied once
on the combined router in __init__.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from rest_api.core.context import AppContext, get_app_context
from rest_api.services.domain import AuthService, FranchiseService, ProductService, PromotionService
from shared.infrastructure.db import get_db


def get_product_service(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
) -> ProductService:
    return ProductService(db, ctx.storage)


def get_franchise_service(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
) -> FranchiseService:
    return FranchiseService(db, ctx.mailer, ctx.settings)


def get_auth_service(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
) -> AuthService:
    return AuthService(db, ctx.mailer, ctx.settings)


def get_promotion_service(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
) -> PromotionService:
    return PromotionService(db, ctx.storage)
