"""
Base class and TimestampMixin for all SQLAlchemy ORM models.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class UUIDPrimaryKeyMixin:
    """UUID primary key generated in Python."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    """
    Mixin providing timestamps and soft delete.

    Fields added:
    - created_at, updated_at: Audit timestamps
    - deleted_at: Soft delete marker; standard reads filter deleted_at IS NULL

    Methods:
    - soft_delete(): Mark entity as deleted
    - restore(): Clear the deleted marker
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = utcnow()

    def restore(self) -> None:
        self.deleted_at = None
        self.updated_at = utcnow()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        id_val = getattr(self, "id", None)
        state = "deleted" if self.deleted_at is not None else "active"
        return f"<{class_name}(id={id_val}, {state})>"


ModelT = TypeVar("ModelT", bound=Base)


def new_entity(model: type[ModelT], **fields: Any) -> ModelT:
    """
    Construct a model with its id and timestamps filled in before it
    reaches the session, so callers can reference entity.id immediately.
    """
    now = utcnow()
    fields.setdefault("id", uuid.uuid4())
    if hasattr(model, "created_at"):
        fields.setdefault("created_at", now)
    if hasattr(model, "updated_at"):
        fields.setdefault("updated_at", now)
    return model(**fields)
