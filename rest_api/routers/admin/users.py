"""
User management endpoints.
"""

import uuid

from fastapi import APIRouter, Depends

from rest_api.routers._common.pagination import Pagination, get_pagination
from rest_api.routers.admin._base import get_auth_service
from rest_api.services.domain import AuthService
from shared.security.auth import TokenClaims, require_admin
from shared.utils.admin_schemas import UserAdminOutput, UserAdminUpdate, UserListOutput


router = APIRouter(tags=["admin-users"])


@router.get("/users", response_model=UserListOutput)
def list_users(
    search: str | None = None,
    role: str | None = None,
    pagination: Pagination = Depends(get_pagination),
    service: AuthService = Depends(get_auth_service),
) -> UserListOutput:
    users, total = service.list_users(search, role, pagination.limit, pagination.offset)
    return UserListOutput(users=[UserAdminOutput.model_validate(u) for u in users], total=total)


@router.put("/users/{user_id}", response_model=UserAdminOutput)
def update_user(
    user_id: uuid.UUID,
    body: UserAdminUpdate,
    claims: TokenClaims = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> UserAdminOutput:
    """Change role or block status. Admins cannot change their own role or block themselves."""
    user = service.admin_update_user(claims, user_id, role=body.role, is_blocked=body.is_blocked)
    return UserAdminOutput.model_validate(user)
