"""
Tests for startup seeding.
"""

from sqlalchemy import func, select

from rest_api.models import User
from rest_api.seed import DEFAULT_ADMIN_EMAIL, seed_admin
from shared.config.settings import get_settings
from shared.security.password import verify_password


class TestSeedAdmin:
    def test_creates_configured_admin_once(self, db_session):
        cfg = get_settings().model_copy(update={"admin_email": "Boss@Grabbi.com", "admin_password": "s3cret-pass"})

        admin = seed_admin(db_session, cfg)
        assert admin.email == "boss@grabbi.com"
        assert admin.role == "admin"
        assert verify_password("s3cret-pass", admin.password_hash)

        assert seed_admin(db_session, cfg) is None
        assert db_session.scalar(select(func.count(User.id))) == 1

    def test_default_email_and_generated_password(self, db_session):
        cfg = get_settings().model_copy(update={"admin_email": "", "admin_password": ""})
        admin = seed_admin(db_session, cfg)
        assert admin.email == DEFAULT_ADMIN_EMAIL
        assert admin.password_hash
