"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns.
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from shared.config.settings import DATABASE_URL


def _calculate_pool_size() -> int:
    """(2 * CPU cores) + 1, capped at 20."""
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": _calculate_pool_size(),
        "max_overflow": 15,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "connect_args": {"connect_timeout": 10},
    }


engine = create_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.scalars(select(Item)).all()

    Uncommitted work is rolled back when the request ends.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI
    (startup seeding, background jobs).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit, rolling back on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
