"""
Centralized constants for the backend application.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import Role, OrderStatus, validate_order_transition

    if claims.role is Role.ADMIN:
        ...

    if not validate_order_transition(order.status, OrderStatus.DELIVERED):
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Role(str, Enum):
    """User role. Stored as its string value."""

    CUSTOMER = "customer"
    FRANCHISE_OWNER = "franchise_owner"
    FRANCHISE_STAFF = "franchise_staff"
    ADMIN = "admin"


FRANCHISE_ROLES: Final[frozenset[Role]] = frozenset({Role.FRANCHISE_OWNER, Role.FRANCHISE_STAFF})


class StaffRole:
    """Role of a user inside a franchise team."""

    MANAGER: Final[str] = "manager"
    STAFF: Final[str] = "staff"

    ALL: Final[list[str]] = [MANAGER, STAFF]


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TERMINAL_ORDER_STATUSES: Final[frozenset[OrderStatus]] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)


class ProductStatus:
    """Catalog product status constants."""

    ACTIVE: Final[str] = "active"
    INACTIVE: Final[str] = "inactive"

    ALL: Final[list[str]] = [ACTIVE, INACTIVE]


class JobStatus:
    """Batch job status constants."""

    PENDING: Final[str] = "pending"
    PROCESSING: Final[str] = "processing"
    COMPLETED: Final[str] = "completed"
    FAILED: Final[str] = "failed"

    TERMINAL: Final[list[str]] = [COMPLETED, FAILED]


class LoyaltyType:
    """Loyalty history entry types."""

    EARNED: Final[str] = "earned"
    REDEEMED: Final[str] = "redeemed"


# =============================================================================
# Status Transitions
# =============================================================================

# Valid order status transitions (from -> [allowed to states])
# pending → confirmed → preparing → ready → out_for_delivery → delivered
ORDER_TRANSITIONS: Final[dict[OrderStatus, list[OrderStatus]]] = {
    OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
    OrderStatus.CONFIRMED: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
    OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED],
    OrderStatus.OUT_FOR_DELIVERY: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.DELIVERED: [],  # Terminal state
    OrderStatus.CANCELLED: [],  # Terminal state
}


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Quantity limits
    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 999

    # Price limits
    MIN_IMPORT_PRICE: Final[float] = 0.01

    # String lengths
    MAX_NAME_LENGTH: Final[int] = 255
    MAX_FILENAME_LENGTH: Final[int] = 100
    MAX_SEARCH_TERM_LENGTH: Final[int] = 100
    MIN_PASSWORD_LENGTH: Final[int] = 8

    # Pagination defaults
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200
    DEFAULT_OFFSET: Final[int] = 0

    # Batch import
    MAX_BATCH_PRODUCTS: Final[int] = 5000

    # Order numbering
    ORDER_NUMBER_ATTEMPTS: Final[int] = 3

    # Admin dashboard
    DASHBOARD_RECENT_ORDERS: Final[int] = 10
    DASHBOARD_REVENUE_DAYS: Final[int] = 7


# Upload content types accepted for images
ALLOWED_IMAGE_TYPES: Final[frozenset[str]] = frozenset(
    {"image/jpeg", "image/png", "image/webp", "image/gif"}
)

# Public object URL host
STORAGE_PUBLIC_HOST: Final[str] = "storage.googleapis.com"


# =============================================================================
# Status Validation Functions
# =============================================================================


def parse_order_status(value: str) -> OrderStatus | None:
    """Return the OrderStatus for a raw value, or None when unknown."""
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def validate_order_transition(current_status: str, new_status: str) -> bool:
    """
    Validate that an order status transition is allowed.

    Returns True if transition is valid, False otherwise.
    """
    current = parse_order_status(current_status)
    target = parse_order_status(new_status)
    if current is None or target is None:
        return False
    return target in ORDER_TRANSITIONS[current]


def get_allowed_order_transitions(current_status: str) -> list[str]:
    """Get the status values an order may move to from its current status."""
    current = parse_order_status(current_status)
    if current is None:
        return []
    return [s.value for s in ORDER_TRANSITIONS[current]]
