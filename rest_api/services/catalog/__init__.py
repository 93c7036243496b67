"""
Catalog Services - effective pricing, franchise geography and product views.

Provides:
- Effective price and availability resolution (pricing)
- Haversine distance, delivery fee and store status (geo)
- Customer-facing product listing (product_view)
"""

from .pricing import (
    EffectivePrice,
    resolve_effective_price,
    is_promotion_active,
    is_available_in_franchise,
    is_available_globally,
)
from .geo import (
    StoreStatus,
    haversine_km,
    franchises_in_range,
    find_nearest_franchise,
    calculate_delivery_fee,
    estimate_delivery_time,
    calculate_store_status,
    format_time_12h,
)
from .product_view import (
    build_product_view,
    list_product_views,
    get_product_view,
)

__all__ = [
    # Pricing
    "EffectivePrice",
    "resolve_effective_price",
    "is_promotion_active",
    "is_available_in_franchise",
    "is_available_globally",
    # Geography
    "StoreStatus",
    "haversine_km",
    "franchises_in_range",
    "find_nearest_franchise",
    "calculate_delivery_fee",
    "estimate_delivery_time",
    "calculate_store_status",
    "format_time_12h",
    # Product views
    "build_product_view",
    "list_product_views",
    "get_product_view",
]
