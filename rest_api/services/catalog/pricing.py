"""
Effective price and availability resolution.

A FranchiseProduct overlays the global Product: every override that is
set wins, every override that is absent falls back to the product value.
A promotion with neither a start nor an end date is never active.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from rest_api.models import FranchiseProduct, Product, as_utc, utcnow
from shared.config.constants import ProductStatus


@dataclass(frozen=True, slots=True)
class EffectivePrice:
    """Resolved pricing for one product, optionally in one franchise, at one instant."""

    retail_price: float
    promotion_price: float | None
    promotion_start: datetime | None
    promotion_end: datetime | None
    promotion_active: bool
    current_price: float


def _coalesce(override, fallback):
    return override if override is not None else fallback


def is_promotion_active(
    promotion_price: float | None,
    start: datetime | None,
    end: datetime | None,
    now: datetime,
) -> bool:
    if promotion_price is None:
        return False
    if start is None and end is None:
        return False
    if start is not None and now < start:
        return False
    if end is not None and now > end:
        return False
    return True


def resolve_effective_price(
    product: Product,
    override: FranchiseProduct | None = None,
    now: datetime | None = None,
) -> EffectivePrice:
    """
    Resolve the price a customer sees right now.

    Args:
        product: Global catalog product.
        override: The franchise's overlay row, if the order is placed in a franchise.
        now: Evaluation instant (defaults to current UTC time).
    """
    now = as_utc(now) if now is not None else utcnow()

    if override is not None:
        retail = _coalesce(override.retail_price_override, product.retail_price)
        promo = _coalesce(override.promotion_price_override, product.promotion_price)
        start = _coalesce(override.promotion_start_override, product.promotion_start)
        end = _coalesce(override.promotion_end_override, product.promotion_end)
    else:
        retail = product.retail_price
        promo = product.promotion_price
        start = product.promotion_start
        end = product.promotion_end

    start = as_utc(start)
    end = as_utc(end)
    active = is_promotion_active(promo, start, end, now)

    return EffectivePrice(
        retail_price=retail,
        promotion_price=promo,
        promotion_start=start,
        promotion_end=end,
        promotion_active=active,
        current_price=promo if active else retail,
    )


def is_available_in_franchise(override: FranchiseProduct | None) -> bool:
    """Sellable in a franchise: listed there, flagged available and in stock."""
    if override is None:
        return False
    return bool(override.is_available) and override.stock_quantity > 0


def is_available_globally(product: Product) -> bool:
    """Sellable in the global catalog view."""
    return (
        product.status == ProductStatus.ACTIVE
        and bool(product.online_visible)
        and product.stock_quantity > 0
    )
