"""
Shared dependencies for franchise portal routers.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from rest_api.core.context import AppContext, get_app_context
from rest_api.models import FranchiseStaff
from rest_api.services.domain import FranchiseService, PromotionService
from shared.infrastructure.db import get_db
from shared.utils.admin_schemas import StaffOutput


def get_franchise_service(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
) -> FranchiseService:
    return FranchiseService(db, ctx.mailer, ctx.settings)


def staff_output(member: FranchiseStaff) -> StaffOutput:
    return StaffOutput(
        id=member.id,
        user_id=member.user_id,
        email=member.user.email,
        name=member.user.name,
        role=member.role,
        created_at=member.created_at,
    )


def get_promotion_service(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
) -> PromotionService:
    return PromotionService(db, ctx.storage)
