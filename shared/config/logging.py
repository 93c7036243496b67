"""
Centralized structured logging for the backend.
Uses Python's standard logging with JSON formatting for production.

Every record carries the request correlation ID when one is active.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    One JSON object per line, with request_id and structured fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None)
        if request_id and request_id != "-":
            log_data["request_id"] = request_id

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["data"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if settings.debug:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable, coloured formatter for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        request_id = getattr(record, "request_id", None)
        if request_id and request_id != "-":
            request_id_str = f"{self.DIM}[{request_id[:8]}]{self.RESET} "
        else:
            request_id_str = ""

        message = (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{request_id_str}{record.name}: {record.getMessage()}"
        )

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            data_str = " | ".join(f"{k}={v}" for k, v in extra_data.items())
            message += f" ({data_str})"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """
    Logger accepting keyword context:

        logger.info("ORDER_CREATED", order_id=order.id, total=order.total)
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        **kwargs: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        if extra is None:
            extra = {}
        extra["extra_data"] = kwargs if kwargs else None
        super()._log(level, msg, args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.ERROR, msg, args, exc_info=exc_info, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.CRITICAL, msg, args, exc_info=exc_info, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """
    Configure logging for the application.
    Call this once at application startup.
    """
    # Import here to avoid circular imports
    from shared.infrastructure.correlation import CorrelationIdFilter

    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIdFilter())

    if settings.environment == "production":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = DevelopmentFormatter()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Third-party noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)
        logger.info("User logged in", user_id=user.id, email=mask_email(user.email))
    """
    return logging.getLogger(name)  # type: ignore


def mask_email(email: str | None) -> str:
    """
    Mask an email address for logging: "user@example.com" -> "us***@example.com".
    """
    if not email:
        return "<no-email>"

    try:
        local, domain = email.split("@", 1)
        if len(local) <= 2:
            masked_local = local[:1] + "***"
        else:
            masked_local = local[:2] + "***"
        return f"{masked_local}@{domain}"
    except ValueError:
        return "***@invalid"


# Pre-configured loggers for common modules
rest_api_logger = get_logger("rest_api")
auth_logger = get_logger("rest_api.auth")
orders_logger = get_logger("rest_api.orders")
batch_logger = get_logger("rest_api.batch")
storage_logger = get_logger("shared.storage")
email_logger = get_logger("shared.email")

security_audit_logger = get_logger("security.audit")


# =============================================================================
# Security Audit Logging
# =============================================================================


def audit_auth_event(
    event_type: str,
    user_id: str | None = None,
    email: str | None = None,
    success: bool = True,
    reason: str | None = None,
    ip_address: str | None = None,
    **extra: Any,
) -> None:
    """
    Log an authentication event (LOGIN, SIGNUP, TOKEN_REFRESH, PASSWORD_RESET...).

    Failures are logged at WARNING, successes at INFO. Email is masked.
    """
    log_level = logging.INFO if success else logging.WARNING

    security_audit_logger._log_with_data(
        log_level,
        f"AUTH_AUDIT: {event_type}",
        args=(),
        event_type=event_type,
        user_id=user_id,
        email=mask_email(email) if email else None,
        success=success,
        reason=reason,
        ip_address=ip_address,
        **extra,
    )


def audit_rate_limit_event(
    identifier: str,
    limit: int,
    window: int,
    path: str | None = None,
    **extra: Any,
) -> None:
    """Log a request rejected by the rate limiter."""
    security_audit_logger.warning(
        "RATE_LIMIT_AUDIT",
        identifier=identifier,
        limit=limit,
        window=window,
        path=path,
        **extra,
    )
