"""
Auth Domain Service.

Handles:
- Customer signup and login (bcrypt passwords, JWT pair)
- Refresh token rotation: the presented token is revoked and a new one stored
- Profile, password change and password reset by emailed token
- Loyalty balance, history and redemption
- Admin user management (role, block)
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rest_api.models import (
    LoyaltyHistory,
    PasswordResetToken,
    RefreshToken,
    User,
    new_entity,
    utcnow,
)
from shared.config.constants import Limits, LoyaltyType, Role
from shared.config.logging import auth_logger as logger
from shared.config.logging import audit_auth_event, mask_email
from shared.config.settings import Settings
from shared.infrastructure.db import safe_commit
from shared.infrastructure.email import EmailService
from shared.security.auth import (
    TokenClaims,
    generate_access_token,
    generate_refresh_token,
    validate_refresh_token,
)
from shared.security.password import generate_reset_token, hash_password, verify_password
from shared.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from shared.utils.schemas import SignupRequest, UpdateProfileRequest
from shared.utils.validators import escape_like_pattern, sanitize_search_term

RESET_TOKEN_TTL = timedelta(hours=1)

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."
BLOCKED_MESSAGE = "Your account has been blocked. Please contact support."


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """
    Domain service for identity and account operations.

    Usage:
        service = AuthService(db, mailer, settings)
        user, access, refresh = service.login(body.email, body.password)
    """

    def __init__(self, db: Session, mailer: EmailService, settings: Settings):
        self._db = db
        self._mailer = mailer
        self._settings = settings

    # =========================================================================
    # Tokens
    # =========================================================================

    def _issue_tokens(self, user: User) -> tuple[str, str]:
        access = generate_access_token(user.id, user.email, user.role, user.franchise_id)
        refresh = generate_refresh_token(user.id, user.email, user.role, user.franchise_id)
        self._db.add(
            new_entity(
                RefreshToken,
                user_id=user.id,
                token=refresh,
                expires_at=utcnow() + timedelta(days=self._settings.refresh_token_ttl_days),
            )
        )
        return access, refresh

    def get_user(self, user_id: uuid.UUID) -> User:
        user = self._db.scalar(select(User).where(User.id == user_id, User.deleted_at.is_(None)))
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def find_by_email(self, email: str) -> User | None:
        return self._db.scalar(
            select(User).where(User.email == normalize_email(email), User.deleted_at.is_(None))
        )

    # =========================================================================
    # Signup / login / refresh
    # =========================================================================

    def signup(self, body: SignupRequest) -> tuple[User, str, str]:
        """Create a customer account. Returns (user, access_token, refresh_token)."""
        email = normalize_email(body.email)
        if self._db.scalar(select(User.id).where(User.email == email)) is not None:
            raise ConflictError("Email already registered", email=mask_email(email))

        user = new_entity(
            User,
            email=email,
            password_hash=hash_password(body.password),
            name=body.name.strip(),
            phone=body.phone.strip(),
            role=Role.CUSTOMER.value,
            loyalty_points=0,
            is_blocked=False,
        )
        self._db.add(user)
        self._db.flush()
        access, refresh = self._issue_tokens(user)
        safe_commit(self._db)
        self._db.refresh(user)

        logger.info("SIGNUP_SUCCESS", user_id=str(user.id), email=mask_email(email))
        self._mailer.send_welcome_email(user.email, user.name)
        return user, access, refresh

    def login(self, email: str, password: str) -> tuple[User, str, str]:
        user = self.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            audit_auth_event("LOGIN", email=email, success=False, reason="invalid credentials")
            raise UnauthorizedError("Invalid credentials", email=mask_email(email))
        if user.is_blocked:
            audit_auth_event("LOGIN", user_id=str(user.id), success=False, reason="blocked")
            raise ForbiddenError(BLOCKED_MESSAGE, user_id=str(user.id))

        access, refresh = self._issue_tokens(user)
        safe_commit(self._db)
        logger.info("LOGIN_SUCCESS", user_id=str(user.id), email=mask_email(user.email), role=user.role)
        return user, access, refresh

    def refresh(self, token: str) -> tuple[str, str]:
        """
        Rotate a refresh token.

        Raises:
            UnauthorizedError: Token invalid, expired, revoked or unknown.
        """
        try:
            claims = validate_refresh_token(token)
        except UnauthorizedError:
            raise UnauthorizedError("Invalid or expired refresh token")

        stored = self._db.scalar(
            select(RefreshToken).where(RefreshToken.token == token).with_for_update()
        )
        if stored is None or not stored.is_usable() or stored.user_id != claims.user_id:
            audit_auth_event("TOKEN_REFRESH", user_id=str(claims.user_id), success=False, reason="unknown or revoked")
            raise UnauthorizedError("Invalid or expired refresh token", user_id=str(claims.user_id))

        user = self.get_user(claims.user_id)
        if user.is_blocked:
            raise ForbiddenError(BLOCKED_MESSAGE, user_id=str(user.id))

        stored.revoked_at = utcnow()
        access, refresh = self._issue_tokens(user)
        safe_commit(self._db)
        logger.info("TOKEN_REFRESHED", user_id=str(user.id))
        return access, refresh

    # =========================================================================
    # Profile and passwords
    # =========================================================================

    def update_profile(self, user_id: uuid.UUID, body: UpdateProfileRequest) -> User:
        user = self.get_user(user_id)
        if body.name is not None:
            user.name = body.name.strip()
        if body.phone is not None:
            user.phone = body.phone.strip()
        user.touch()
        safe_commit(self._db)
        self._db.refresh(user)
        return user

    def change_password(self, user_id: uuid.UUID, current_password: str, new_password: str) -> None:
        user = self.get_user(user_id)
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect", user_id=str(user_id))
        user.password_hash = hash_password(new_password)
        user.touch()
        safe_commit(self._db)
        logger.info("PASSWORD_CHANGED", user_id=str(user_id))

    def forgot_password(self, email: str) -> None:
        """Email a single-use reset link. Silent when the email is unknown."""
        user = self.find_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email", email=mask_email(email))
            return

        token = generate_reset_token()
        self._db.add(
            new_entity(
                PasswordResetToken,
                user_id=user.id,
                token=token,
                expires_at=utcnow() + RESET_TOKEN_TTL,
            )
        )
        safe_commit(self._db)
        logger.info("PASSWORD_RESET_REQUESTED", user_id=str(user.id))
        self._mailer.send_password_reset_email(
            user.email, user.name, token, self._settings.reset_link_base(user.role)
        )

    def reset_password(self, token: str, new_password: str) -> None:
        reset = self._db.scalar(
            select(PasswordResetToken).where(PasswordResetToken.token == token).with_for_update()
        )
        if reset is None or not reset.is_usable():
            raise ValidationError("Invalid or expired reset token")

        user = self.get_user(reset.user_id)
        user.password_hash = hash_password(new_password)
        user.touch()
        reset.used_at = utcnow()

        # Existing sessions end with the old password
        now = utcnow()
        for stored in self._db.scalars(
            select(RefreshToken).where(
                RefreshToken.user_id == user.id, RefreshToken.revoked_at.is_(None)
            )
        ).all():
            stored.revoked_at = now

        safe_commit(self._db)
        logger.info("PASSWORD_RESET_COMPLETED", user_id=str(user.id))

    # =========================================================================
    # Loyalty
    # =========================================================================

    def loyalty_history(self, user_id: uuid.UUID, limit: int = Limits.DEFAULT_PAGE_SIZE) -> list[LoyaltyHistory]:
        return list(
            self._db.scalars(
                select(LoyaltyHistory)
                .where(LoyaltyHistory.user_id == user_id)
                .order_by(LoyaltyHistory.created_at.desc())
                .limit(min(max(1, limit), Limits.MAX_PAGE_SIZE))
            ).all()
        )

    def redeem_points(self, user_id: uuid.UUID, points: int, description: str = "") -> User:
        """Spend loyalty points. Balance never goes negative."""
        user = self._db.scalar(
            select(User).where(User.id == user_id, User.deleted_at.is_(None)).with_for_update()
        )
        if user is None:
            raise NotFoundError("User", user_id)
        if points > user.loyalty_points:
            raise ValidationError(
                f"Insufficient points. You have {user.loyalty_points} points.",
                user_id=str(user_id),
                requested=points,
            )

        user.loyalty_points -= points
        self._db.add(
            new_entity(
                LoyaltyHistory,
                user_id=user.id,
                points=-points,
                type=LoyaltyType.REDEEMED,
                description=description.strip() or "Points redeemed",
            )
        )
        safe_commit(self._db)
        self._db.refresh(user)
        logger.info("LOYALTY_REDEEMED", user_id=str(user_id), points=points, balance=user.loyalty_points)
        return user

    # =========================================================================
    # Admin user management
    # =========================================================================

    def list_users(
        self,
        search: str | None = None,
        role: str | None = None,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
        offset: int = Limits.DEFAULT_OFFSET,
    ) -> tuple[list[User], int]:
        query = select(User).where(User.deleted_at.is_(None))
        if role:
            query = query.where(User.role == role)
        if search:
            term = sanitize_search_term(search)
            if term:
                pattern = f"%{escape_like_pattern(term.lower())}%"
                query = query.where(
                    func.lower(User.email).like(pattern, escape="\\")
                    | func.lower(User.name).like(pattern, escape="\\")
                )
        total = self._db.scalar(select(func.count()).select_from(query.subquery())) or 0
        users = self._db.scalars(
            query.order_by(User.created_at.desc())
            .limit(min(max(1, limit), Limits.MAX_PAGE_SIZE))
            .offset(max(0, offset))
        ).all()
        return list(users), total

    def admin_update_user(
        self,
        actor: TokenClaims,
        user_id: uuid.UUID,
        role: str | None = None,
        is_blocked: bool | None = None,
    ) -> User:
        user = self.get_user(user_id)
        if role is not None and role != user.role:
            if user.id == actor.user_id:
                raise ValidationError("Cannot change your own role", user_id=str(user_id))
            try:
                user.role = Role(role).value
            except ValueError:
                raise ValidationError("Invalid role", role=role)
        if is_blocked is not None:
            if user.id == actor.user_id and is_blocked:
                raise ValidationError("Cannot block your own account", user_id=str(user_id))
            user.is_blocked = is_blocked
        user.touch()
        safe_commit(self._db)
        self._db.refresh(user)
        logger.info(
            "USER_UPDATED_BY_ADMIN",
            user_id=str(user_id),
            role=user.role,
            is_blocked=user.is_blocked,
            by=str(actor.user_id),
        )
        return user
