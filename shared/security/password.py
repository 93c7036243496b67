"""
Password hashing utilities using bcrypt.
"""

import secrets

import bcrypt

BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Returns:
        Hashed password string (includes salt and algorithm info), e.g. "$2b$12$...".
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its bcrypt hash.

    Non-bcrypt hashes never verify.
    """
    if not hashed_password or not hashed_password.startswith(("$2a$", "$2b$", "$2y$")):
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def generate_reset_token() -> str:
    """Random 32-byte token, hex encoded, for password reset links."""
    return secrets.token_hex(32)
