"""
User and Authentication Models.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import Role

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, as_utc, utcnow

if TYPE_CHECKING:
    from .loyalty import LoyaltyHistory


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    Customer, franchise owner/staff or platform admin.

    franchise_id is a plain id (looked up on demand) rather than a
    relationship, since Franchise.owner_id points back at this table.
    """

    __tablename__ = "app_user"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=Role.CUSTOMER.value)
    franchise_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    loyalty_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    loyalty_history: Mapped[list["LoyaltyHistory"]] = relationship(
        back_populates="user", order_by="LoyaltyHistory.created_at.desc()"
    )

    __table_args__ = (
        CheckConstraint("loyalty_points >= 0", name="ck_user_loyalty_points"),
    )

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    @property
    def first_name(self) -> str:
        return (self.name or "").split(" ")[0] or "there"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class PasswordResetToken(UUIDPrimaryKeyMixin, Base):
    """
    Single-use password reset token.
    Usable iff used_at is null and now < expires_at.
    """

    __tablename__ = "password_reset_token"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    user: Mapped["User"] = relationship()

    def is_usable(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.used_at is None and now < as_utc(self.expires_at)


class RefreshToken(UUIDPrimaryKeyMixin, Base):
    """
    Issued refresh token. Rotation revokes the presented token and
    stores the new one.
    """

    __tablename__ = "refresh_token"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def is_usable(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.revoked_at is None and now < as_utc(self.expires_at)
