"""
Centralized HTTP exceptions for consistent error handling.

Every error reaches the client as {"error": "<message>"} (see
rest_api/core/errors.py).

Usage:
    from shared.utils.exceptions import NotFoundError, ForbiddenError, ValidationError

    raise NotFoundError("Product", product_id)
    raise ForbiddenError("Franchise access required")
    raise ValidationError("Cart is empty")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions inherit from this class so that every
    client-visible failure leaves a structured log line.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Insufficient stock")
        raise ValidationError("Invalid role", field="role", value=value)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 401 Unauthorized Errors
# =============================================================================


class UnauthorizedError(AppException):
    """Missing, malformed or invalid credentials (401)."""

    def __init__(self, detail: str = "Invalid or expired token", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="info",
            **log_context,
        )


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Authorization error (403).

    Usage:
        raise ForbiddenError("Admin access required")
    """

    def __init__(self, detail: str = "Access denied", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InsufficientRoleError(ForbiddenError):
    """Caller's role does not satisfy the policy."""

    def __init__(self, required: str, **log_context: Any):
        super().__init__(f"{required} access required", required=required, **log_context)


class FranchiseAccessError(ForbiddenError):
    """Resource belongs to a franchise other than the caller's."""

    def __init__(self, franchise_id: Any = None, **log_context: Any):
        super().__init__(
            "Access to this franchise's resources is not allowed",
            franchise_id=str(franchise_id) if franchise_id else None,
            **log_context,
        )


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Product")
        raise NotFoundError("Order", order_id)
    """

    def __init__(self, entity: str, entity_id: Any = None, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{entity} not found",
            log_level="info",
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            **log_context,
        )


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Email already registered")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidTransitionError(ConflictError):
    """Order status transition not in the allowed table."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        detail = f"Invalid status transition from {from_status} to {to_status}"
        super().__init__(
            detail,
            entity=entity,
            from_status=from_status,
            to_status=to_status,
            **log_context,
        )


class DuplicateEntityError(ConflictError):
    """Entity with the same unique key already exists."""

    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        if identifier:
            detail = f"{entity} '{identifier}' already exists"
        else:
            detail = f"{entity} already exists"
        super().__init__(detail, entity=entity, identifier=identifier, **log_context)


# =============================================================================
# 413 Payload Too Large
# =============================================================================


class PayloadTooLargeError(AppException):
    """Upload over the size limit (413)."""

    def __init__(self, max_bytes: int, **log_context: Any):
        max_mb = max_bytes // (1024 * 1024)
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {max_mb}MB",
            log_level="warning",
            max_bytes=max_bytes,
            **log_context,
        )


# =============================================================================
# 429 Rate Limiting Errors
# =============================================================================


class RateLimitError(AppException):
    """Rate limit exceeded (429)."""

    def __init__(self, retry_after: int, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            log_level="warning",
            headers={"Retry-After": str(retry_after)},
            retry_after=retry_after,
            **log_context,
        )


# =============================================================================
# 5xx Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to create order", user_id=user_id)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed."""

    def __init__(self, operation: str, **log_context: Any):
        super().__init__(f"Failed to {operation}", operation=operation, **log_context)


class ExternalServiceError(AppException):
    """External service error (502 or 503)."""

    def __init__(
        self,
        service: str,
        is_unavailable: bool = False,
        retry_after: int | None = None,
        **log_context: Any,
    ):
        if is_unavailable:
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            detail = f"{service} is temporarily unavailable"
        else:
            status_code = status.HTTP_502_BAD_GATEWAY
            detail = f"Error communicating with {service}"

        headers = {"Retry-After": str(retry_after)} if retry_after else None

        super().__init__(
            status_code=status_code,
            detail=detail,
            log_level="error",
            headers=headers,
            service=service,
            **log_context,
        )
