"""
Tests for authentication endpoints.
"""

import pytest
from sqlalchemy import select

from rest_api.models import PasswordResetToken
from rest_api.services.domain import FORGOT_PASSWORD_MESSAGE
from shared.security.auth import generate_access_token, generate_refresh_token, validate_access_token
from shared.security.password import hash_password, verify_password
from shared.utils.exceptions import UnauthorizedError

from tests.conftest import DEFAULT_PASSWORD, token_for


class TestPasswordHashing:
    """Test password hashing utilities."""

    def test_hash_password_returns_bcrypt_hash(self):
        """Hash should return bcrypt format."""
        hashed = hash_password("mypassword")
        assert hashed.startswith("$2")

    def test_verify_password_correct(self):
        hashed = hash_password("mypassword")
        assert verify_password("mypassword", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = hash_password("mypassword")
        assert verify_password("wrongpassword", hashed) is False


class TestTokens:
    """Access token issuing and validation."""

    def test_access_token_round_trips_claims(self, seed_admin_user):
        token = generate_access_token(seed_admin_user.id, seed_admin_user.email, seed_admin_user.role)
        claims = validate_access_token(token)
        assert claims.user_id == seed_admin_user.id
        assert claims.email == "admin@test.com"
        assert claims.is_admin

    def test_garbage_token_rejected(self):
        with pytest.raises(UnauthorizedError):
            validate_access_token("not.a.jwt")

    def test_refresh_token_is_not_an_access_token(self, seed_customer):
        token = generate_refresh_token(seed_customer.id, seed_customer.email, seed_customer.role)
        with pytest.raises(UnauthorizedError):
            validate_access_token(token)


class TestAuthEndpoints:
    """Test authentication API endpoints."""

    def test_signup_login_me(self, client, mailer):
        """A new customer can sign up, log in and read their profile."""
        response = client.post(
            "/api/auth/signup",
            json={"email": "New.User@Example.com", "password": "secret123", "name": "New User"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["refresh_token"]
        assert data["user"]["email"] == "new.user@example.com"
        assert data["user"]["role"] == "customer"
        assert data["user"]["loyalty_points"] == 0
        assert "Welcome to Grabbi!" in mailer.subjects_for("new.user@example.com")

        response = client.post(
            "/api/auth/login",
            json={"email": "new.user@example.com", "password": "secret123"},
        )
        assert response.status_code == 200
        token = response.json()["token"]

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["name"] == "New User"

    def test_signup_duplicate_email(self, client, seed_customer):
        response = client.post(
            "/api/auth/signup",
            json={"email": "customer@test.com", "password": "secret123", "name": "Copy"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "Email already registered"

    def test_signup_short_password(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"email": "short@test.com", "password": "123", "name": "Short"},
        )
        assert response.status_code == 400
        assert "password" in response.json()["error"]

    def test_login_invalid_password(self, client, seed_customer):
        response = client.post(
            "/api/auth/login",
            json={"email": "customer@test.com", "password": "wrongpassword"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    def test_login_unknown_email(self, client):
        response = client.post(
            "/api/auth/login",
            json={"email": "nobody@test.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 401

    def test_login_blocked_user(self, client, db_session, seed_customer):
        seed_customer.is_blocked = True
        db_session.commit()

        response = client.post(
            "/api/auth/login",
            json={"email": "customer@test.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 403
        assert "blocked" in response.json()["error"]

    def test_me_requires_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "Authorization header required"

    def test_me_rejects_malformed_header(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_profile_alias(self, client, customer_headers):
        response = client.get("/api/auth/profile", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["email"] == "customer@test.com"

    def test_update_profile(self, client, customer_headers):
        response = client.put(
            "/api/auth/me",
            json={"name": "Jane Q. Shopper", "phone": "07700 900123"},
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Jane Q. Shopper"
        assert response.json()["phone"] == "07700 900123"

    def test_refresh_rotates_token(self, client, seed_customer):
        login = client.post(
            "/api/auth/login",
            json={"email": "customer@test.com", "password": DEFAULT_PASSWORD},
        ).json()

        response = client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert response.status_code == 200
        rotated = response.json()
        assert rotated["token"]
        assert rotated["refresh_token"] != login["refresh_token"]

        # The presented token was revoked by the rotation
        response = client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert response.status_code == 401

    def test_refresh_rejects_access_token(self, client, seed_customer):
        access = token_for(seed_customer)["Authorization"].split(" ", 1)[1]
        response = client.post("/api/auth/refresh", json={"refresh_token": access})
        assert response.status_code == 401

    def test_change_password(self, client, seed_customer, customer_headers):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "newpass456"},
            headers=customer_headers,
        )
        assert response.status_code == 200

        response = client.post(
            "/api/auth/login",
            json={"email": "customer@test.com", "password": "newpass456"},
        )
        assert response.status_code == 200

    def test_change_password_wrong_current(self, client, customer_headers):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "not-it-at-all", "new_password": "newpass456"},
            headers=customer_headers,
        )
        assert response.status_code == 400


class TestPasswordReset:
    """Forgot/reset password flow."""

    def test_unknown_email_gets_same_message(self, client, mailer):
        response = client.post("/api/auth/forgot-password", json={"email": "ghost@test.com"})
        assert response.status_code == 200
        assert response.json()["message"] == FORGOT_PASSWORD_MESSAGE
        assert mailer.sent == []

    def test_reset_with_emailed_token(self, client, db_session, seed_customer, mailer):
        response = client.post("/api/auth/forgot-password", json={"email": "customer@test.com"})
        assert response.status_code == 200
        assert response.json()["message"] == FORGOT_PASSWORD_MESSAGE
        assert "Reset Your Password - Grabbi" in mailer.subjects_for("customer@test.com")

        token = db_session.scalar(
            select(PasswordResetToken.token).where(PasswordResetToken.user_id == seed_customer.id)
        )
        response = client.post(
            "/api/auth/reset-password", json={"token": token, "password": "brandnew789"}
        )
        assert response.status_code == 200

        # Single use
        response = client.post(
            "/api/auth/reset-password", json={"token": token, "password": "another789"}
        )
        assert response.status_code == 400

        response = client.post(
            "/api/auth/login",
            json={"email": "customer@test.com", "password": "brandnew789"},
        )
        assert response.status_code == 200


class TestLoyaltyEndpoints:
    """Loyalty balance, history and redemption."""

    def test_redeem_points(self, client, db_session, seed_customer, customer_headers):
        seed_customer.loyalty_points = 40
        db_session.commit()

        response = client.post(
            "/api/auth/loyalty/redeem",
            json={"points": 15, "description": "Voucher"},
            headers=customer_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["loyalty_points"] == 25
        assert data["history"][0]["points"] == -15
        assert data["history"][0]["type"] == "redeemed"

    def test_redeem_more_than_balance(self, client, db_session, seed_customer, customer_headers):
        seed_customer.loyalty_points = 5
        db_session.commit()

        response = client.post(
            "/api/auth/loyalty/redeem", json={"points": 6}, headers=customer_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Insufficient points. You have 5 points."
        db_session.refresh(seed_customer)
        assert seed_customer.loyalty_points == 5

