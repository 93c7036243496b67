"""
Authentication router.
Handles signup, login, token refresh, profile, password reset and loyalty.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from rest_api.core.context import AppContext, get_app_context
from rest_api.services.domain import FORGOT_PASSWORD_MESSAGE, AuthService
from shared.infrastructure.db import get_db
from shared.security.auth import TokenClaims, require_auth
from shared.utils.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoyaltyBalanceOutput,
    LoyaltyHistoryOutput,
    MessageResponse,
    RedeemPointsRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenResponse,
    UpdateProfileRequest,
    UserOutput,
)


router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_auth_service(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
) -> AuthService:
    return AuthService(db, ctx.mailer, ctx.settings)


# =============================================================================
# Signup / login / refresh
# =============================================================================


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> AuthResponse:
    """Create a customer account and return a token pair."""
    user, token, refresh_token = service.signup(body)
    return AuthResponse(token=token, refresh_token=refresh_token, user=UserOutput.model_validate(user))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> AuthResponse:
    """Alias of /signup."""
    return signup(body, service)


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)) -> AuthResponse:
    """
    Authenticate with email and password.

    Unknown email and wrong password both answer 401 "Invalid credentials";
    blocked accounts get 403.
    """
    user, token, refresh_token = service.login(body.email, body.password)
    return AuthResponse(token=token, refresh_token=refresh_token, user=UserOutput.model_validate(user))


@router.post("/refresh", response_model=TokenResponse)
def refresh(body: RefreshTokenRequest, service: AuthService = Depends(get_auth_service)) -> TokenResponse:
    """Exchange a refresh token for a new pair. The presented token is revoked."""
    token, refresh_token = service.refresh(body.refresh_token)
    return TokenResponse(token=token, refresh_token=refresh_token)


# =============================================================================
# Profile
# =============================================================================


@router.get("/me", response_model=UserOutput)
def get_me(
    claims: TokenClaims = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
) -> UserOutput:
    return UserOutput.model_validate(service.get_user(claims.user_id))


@router.get("/profile", response_model=UserOutput)
def get_profile(
    claims: TokenClaims = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
) -> UserOutput:
    """Alias of GET /me."""
    return get_me(claims, service)


@router.put("/me", response_model=UserOutput)
def update_me(
    body: UpdateProfileRequest,
    claims: TokenClaims = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
) -> UserOutput:
    return UserOutput.model_validate(service.update_profile(claims.user_id, body))


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    claims: TokenClaims = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.change_password(claims.user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


# =============================================================================
# Password reset
# =============================================================================


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Always 200 with the same message, whether or not the email exists."""
    service.forgot_password(body.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.reset_password(body.token, body.password)
    return MessageResponse(message="Password has been reset successfully")


# =============================================================================
# Loyalty
# =============================================================================


@router.get("/loyalty/history", response_model=LoyaltyBalanceOutput)
def loyalty_history(
    claims: TokenClaims = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
) -> LoyaltyBalanceOutput:
    user = service.get_user(claims.user_id)
    history = service.loyalty_history(claims.user_id)
    return LoyaltyBalanceOutput(
        loyalty_points=user.loyalty_points,
        history=[LoyaltyHistoryOutput.model_validate(h) for h in history],
    )


@router.post("/loyalty/redeem", response_model=LoyaltyBalanceOutput)
def redeem_points(
    body: RedeemPointsRequest,
    claims: TokenClaims = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
) -> LoyaltyBalanceOutput:
    """Spend points. 400 when the balance is too low."""
    user = service.redeem_points(claims.user_id, body.points, body.description)
    history = service.loyalty_history(claims.user_id)
    return LoyaltyBalanceOutput(
        loyalty_points=user.loyalty_points,
        history=[LoyaltyHistoryOutput.model_validate(h) for h in history],
    )
