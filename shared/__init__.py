"""
Shared modules used by the REST API.

STRUCTURE:
- shared.security: Authentication, authorization, rate limiting
  - auth.py: JWT issue/validate, authorization policies
  - password.py: Bcrypt hashing
  - rate_limit.py: Per-IP token bucket with reaper

- shared.infrastructure: Database, storage, email
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: X-Request-ID middleware and logging filter
  - storage.py: Object storage (Firebase / Cloud Storage)
  - email.py: SMTP notifications, dispatched off the request path

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Role, OrderStatus, transitions

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - validators.py: SSRF guard, filename sanitization, validation messages
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import require_auth, TokenClaims
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Role, OrderStatus
    from shared.utils.exceptions import NotFoundError, ForbiddenError
"""
