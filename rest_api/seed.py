"""
Startup seed data.
Creates the default admin account when no user owns the configured email.
"""

import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import User, new_entity
from shared.config.constants import Role
from shared.config.logging import get_logger
from shared.config.settings import Settings
from shared.infrastructure.db import safe_commit
from shared.security.password import hash_password

logger = get_logger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@grabbi.com"


def seed_admin(db: Session, cfg: Settings) -> User | None:
    """
    Ensure the admin account exists. Idempotent.

    ADMIN_EMAIL defaults to admin@grabbi.com; without ADMIN_PASSWORD a
    random password is generated and logged once.

    Returns:
        The created admin, or None when the email is already registered.
    """
    email = (cfg.admin_email or DEFAULT_ADMIN_EMAIL).strip().lower()
    if db.scalar(select(User.id).where(User.email == email)) is not None:
        logger.debug("Admin already seeded, skipping")
        return None

    password = cfg.admin_password
    if not password:
        password = secrets.token_hex(16)
        logger.warning(
            "ADMIN_PASSWORD not set, generated a random admin password. Save it now",
            email=email,
            password=password,
        )

    admin = new_entity(
        User,
        email=email,
        password_hash=hash_password(password),
        name=cfg.admin_name or "Admin",
        phone="",
        role=Role.ADMIN.value,
        loyalty_points=0,
        is_blocked=False,
    )
    db.add(admin)
    safe_commit(db)
    logger.info("Default admin created", user_id=str(admin.id))
    return admin


def seed(db: Session, cfg: Settings) -> None:
    """Run all seeders."""
    seed_admin(db, cfg)
