"""
Infrastructure module: Database, object storage, email.

Provides:
- Database sessions and transactions (db.py)
- Object storage client (storage.py)
- SMTP notifier (email.py)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    get_db_context,
    safe_commit,
)

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "safe_commit",
]
