"""
Utilities module: Exceptions, validators, schemas.
"""

from shared.utils.exceptions import (
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    UnauthorizedError,
)
from shared.utils.validators import (
    validate_external_url,
    sanitize_filename,
    escape_like_pattern,
)
from shared.utils.schemas import ErrorResponse

__all__ = [
    # exceptions
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "UnauthorizedError",
    # validators
    "validate_external_url",
    "sanitize_filename",
    "escape_like_pattern",
    # schemas
    "ErrorResponse",
]
