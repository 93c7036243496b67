"""
Authentication and authorization utilities.

Access tokens (2h, iss "grabbi-backend") authenticate API calls; refresh
tokens (7d, iss "grabbi-refresh") obtain new access tokens. Both are
HS256 JWTs carrying {user_id, email, role, franchise_id?, iat, exp, iss}.

Authorization policies are FastAPI dependencies layered on top of token
validation: require_auth, require_admin, require_franchise and
require_franchise_owner.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends, Header

from shared.config.constants import FRANCHISE_ROLES, Role
from shared.config.logging import get_logger
from shared.config.settings import get_settings
from shared.utils.exceptions import (
    ForbiddenError,
    FranchiseAccessError,
    InsufficientRoleError,
    UnauthorizedError,
)

logger = get_logger(__name__)

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("user_id", "email", "role", "iat", "exp", "iss")


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Identity carried by a validated token."""

    user_id: uuid.UUID
    email: str
    role: Role
    franchise_id: uuid.UUID | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_franchise_user(self) -> bool:
        return self.role in FRANCHISE_ROLES


def require_jwt_secret() -> str:
    """
    Return the signing secret, failing hard when it is not configured.

    Raises:
        RuntimeError: If JWT_SECRET is empty.
    """
    secret = get_settings().jwt_secret
    if not secret:
        raise RuntimeError("JWT_SECRET environment variable is required")
    return secret


# =============================================================================
# Token issuing
# =============================================================================


def _sign(
    user_id: uuid.UUID | str,
    email: str,
    role: Role | str,
    franchise_id: uuid.UUID | str | None,
    issuer: str,
    ttl_seconds: int,
) -> str:
    now = int(time.time())
    payload: dict[str, Any] = {
        "user_id": str(user_id),
        "email": email,
        "role": Role(role).value,
        "iat": now,
        "exp": now + ttl_seconds,
        "iss": issuer,
        # unique per token
        "jti": uuid.uuid4().hex,
    }
    if franchise_id:
        payload["franchise_id"] = str(franchise_id)
    return jwt.encode(payload, require_jwt_secret(), algorithm=ALGORITHM)


def generate_access_token(
    user_id: uuid.UUID | str,
    email: str,
    role: Role | str,
    franchise_id: uuid.UUID | str | None = None,
) -> str:
    """Issue a short-lived access token."""
    cfg = get_settings()
    return _sign(
        user_id, email, role, franchise_id,
        issuer=cfg.jwt_access_issuer,
        ttl_seconds=cfg.access_token_ttl_hours * 3600,
    )


def generate_refresh_token(
    user_id: uuid.UUID | str,
    email: str,
    role: Role | str,
    franchise_id: uuid.UUID | str | None = None,
) -> str:
    """Issue a long-lived refresh token."""
    cfg = get_settings()
    return _sign(
        user_id, email, role, franchise_id,
        issuer=cfg.jwt_refresh_issuer,
        ttl_seconds=cfg.refresh_token_ttl_days * 86400,
    )


# =============================================================================
# Token validation
# =============================================================================


def _decode(token: str, issuer: str) -> TokenClaims:
    """
    Decode and validate a token for the given issuer.

    Only HS256 is accepted, so tokens signed with any other algorithm
    family fail verification.

    Raises:
        UnauthorizedError: On any validation failure.
    """
    try:
        payload = jwt.decode(
            token,
            require_jwt_secret(),
            algorithms=[ALGORITHM],
            issuer=issuer,
            options={"require": list(REQUIRED_CLAIMS)},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError(reason="expired")
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(reason=type(e).__name__)

    try:
        user_id = uuid.UUID(str(payload["user_id"]))
        role = Role(payload["role"])
        raw_franchise = payload.get("franchise_id")
        franchise_id = uuid.UUID(str(raw_franchise)) if raw_franchise else None
    except (ValueError, TypeError):
        raise UnauthorizedError(reason="malformed claims")

    return TokenClaims(
        user_id=user_id,
        email=str(payload["email"]),
        role=role,
        franchise_id=franchise_id,
    )


def validate_access_token(token: str) -> TokenClaims:
    """Validate an access token and return its claims."""
    return _decode(token, get_settings().jwt_access_issuer)


def validate_refresh_token(token: str) -> TokenClaims:
    """Validate a refresh token and return its claims."""
    return _decode(token, get_settings().jwt_refresh_issuer)


# =============================================================================
# Authorization policies (FastAPI dependencies)
# =============================================================================


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract the bearer token from an Authorization header.

    Raises:
        UnauthorizedError: If the header is missing or malformed.
    """
    if not authorization:
        raise UnauthorizedError("Authorization header required")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1].strip():
        raise UnauthorizedError("Invalid authorization header format")
    return parts[1].strip()


def require_auth(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> TokenClaims:
    """
    Any valid access token.

    Usage:
        @router.get("/me")
        def me(claims: TokenClaims = Depends(require_auth)):
            ...
    """
    return validate_access_token(get_bearer_token(authorization))


def require_admin(claims: TokenClaims = Depends(require_auth)) -> TokenClaims:
    """Role must be admin."""
    if claims.role is not Role.ADMIN:
        raise InsufficientRoleError("Admin", user_id=str(claims.user_id))
    return claims


def require_franchise(claims: TokenClaims = Depends(require_auth)) -> TokenClaims:
    """Role must be franchise owner or staff, with a franchise bound to the token."""
    if not claims.is_franchise_user:
        raise InsufficientRoleError("Franchise", user_id=str(claims.user_id))
    if claims.franchise_id is None:
        raise ForbiddenError(
            "No franchise associated with this account", user_id=str(claims.user_id)
        )
    return claims


def require_franchise_owner(claims: TokenClaims = Depends(require_franchise)) -> TokenClaims:
    """Role must be franchise owner."""
    if claims.role is not Role.FRANCHISE_OWNER:
        raise InsufficientRoleError("Franchise owner", user_id=str(claims.user_id))
    return claims


def require_staff_or_admin(claims: TokenClaims = Depends(require_auth)) -> TokenClaims:
    """Admin, or a franchise user bound to a franchise."""
    if claims.role is Role.ADMIN:
        return claims
    if claims.role in FRANCHISE_ROLES and claims.franchise_id is not None:
        return claims
    raise InsufficientRoleError("Staff", user_id=str(claims.user_id))


def ensure_franchise_scope(claims: TokenClaims, resource_franchise_id: uuid.UUID | None) -> None:
    """
    Verify a franchise-owned resource belongs to the caller's franchise.

    Admins pass. Franchise users touching another franchise's resource
    get 403, never 404.
    """
    if claims.role is Role.ADMIN:
        return
    if claims.role in FRANCHISE_ROLES:
        if resource_franchise_id is None or resource_franchise_id != claims.franchise_id:
            raise FranchiseAccessError(resource_franchise_id, user_id=str(claims.user_id))
        return
    if claims.role is Role.CUSTOMER:
        raise InsufficientRoleError("Franchise", user_id=str(claims.user_id))
    raise ForbiddenError()
