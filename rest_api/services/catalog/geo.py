"""
Distance, delivery and opening-hours helpers for franchises.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from rest_api.models import Franchise, StoreHours

EARTH_RADIUS_KM = 6371.0

# Delivery time estimate: fixed handling time plus urban travel at 20 km/h
BASE_DELIVERY_MINUTES = 15
DELIVERY_SPEED_KMH = 20.0
DELIVERY_WINDOW_MINUTES = 15

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class _DeliveryPolicy(Protocol):
    delivery_fee: float
    free_delivery_min: float


@dataclass(frozen=True, slots=True)
class StoreStatus:
    is_open: bool
    message: str


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def franchises_in_range(
    franchises: Iterable[Franchise], lat: float, lng: float
) -> list[tuple[Franchise, float]]:
    """Franchises whose delivery radius covers the point, nearest first."""
    result = []
    for franchise in franchises:
        distance = haversine_km(lat, lng, franchise.latitude, franchise.longitude)
        if distance <= franchise.delivery_radius:
            result.append((franchise, distance))
    result.sort(key=lambda pair: pair[1])
    return result


def find_nearest_franchise(
    franchises: Iterable[Franchise], lat: float, lng: float
) -> tuple[Franchise, float] | None:
    """Nearest franchise that delivers to the point, with its distance, or None."""
    candidates = franchises_in_range(franchises, lat, lng)
    return candidates[0] if candidates else None


def calculate_delivery_fee(subtotal: float, policy: _DeliveryPolicy) -> float:
    """Free delivery from free_delivery_min upwards, otherwise the flat fee."""
    if policy.free_delivery_min <= subtotal:
        return 0.0
    return policy.delivery_fee


def estimate_delivery_time(distance_km: float) -> str:
    """Delivery window such as '18-33 min'."""
    min_time = BASE_DELIVERY_MINUTES + int(distance_km / DELIVERY_SPEED_KMH * 60)
    return f"{min_time}-{min_time + DELIVERY_WINDOW_MINUTES} min"


def format_time_12h(time_24: str) -> str:
    """'21:00' -> '9:00 PM'. Unparseable input is returned unchanged."""
    parts = time_24.split(":")
    if len(parts) != 2 or not parts[0].isdigit():
        return time_24
    hour = int(parts[0])
    period = "PM" if hour >= 12 else "AM"
    if hour > 12:
        hour -= 12
    elif hour == 0:
        hour = 12
    return f"{hour}:{parts[1]} {period}"


def sunday_based_weekday(moment: datetime) -> int:
    """0=Sunday .. 6=Saturday, matching StoreHours.day_of_week."""
    return moment.isoweekday() % 7


def calculate_store_status(hours: Sequence[StoreHours], now: datetime) -> StoreStatus:
    """Open/closed state and a display message for the given local time."""
    by_day = {h.day_of_week: h for h in hours}
    today = sunday_based_weekday(now)
    current = now.strftime("%H:%M")

    today_hours = by_day.get(today)
    if today_hours is not None and not today_hours.is_closed:
        if today_hours.open_time <= current <= today_hours.close_time:
            return StoreStatus(True, f"Open until {format_time_12h(today_hours.close_time)}")
        if current < today_hours.open_time:
            return StoreStatus(False, f"Opens today at {format_time_12h(today_hours.open_time)}")

    for offset in range(1, 8):
        day = (today + offset) % 7
        next_hours = by_day.get(day)
        if next_hours is not None and not next_hours.is_closed:
            return StoreStatus(
                False,
                f"Closed · Opens {DAY_NAMES[day]} at {format_time_12h(next_hours.open_time)}",
            )

    return StoreStatus(False, "Temporarily closed")
