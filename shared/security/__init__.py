"""
Security module: Authentication, password hashing, rate limiting.
"""

from shared.security.auth import (
    TokenClaims,
    generate_access_token,
    generate_refresh_token,
    validate_access_token,
    validate_refresh_token,
    get_bearer_token,
    require_auth,
    require_admin,
    require_franchise,
    require_franchise_owner,
    ensure_franchise_scope,
)
from shared.security.password import hash_password, verify_password
from shared.security.rate_limit import TokenBucketLimiter, client_key

__all__ = [
    # auth
    "TokenClaims",
    "generate_access_token",
    "generate_refresh_token",
    "validate_access_token",
    "validate_refresh_token",
    "get_bearer_token",
    "require_auth",
    "require_admin",
    "require_franchise",
    "require_franchise_owner",
    "ensure_franchise_scope",
    # password
    "hash_password",
    "verify_password",
    # rate_limit
    "TokenBucketLimiter",
    "client_key",
]
