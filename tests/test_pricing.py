"""
Tests for effective price resolution.
"""

from datetime import datetime, timedelta, timezone

from rest_api.models import FranchiseProduct, Product
from rest_api.services.catalog import (
    is_available_globally,
    is_available_in_franchise,
    is_promotion_active,
    resolve_effective_price,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
YESTERDAY = NOW - timedelta(days=1)
TOMORROW = NOW + timedelta(days=1)


def _product(**fields):
    defaults = dict(
        retail_price=4.0,
        promotion_price=None,
        promotion_start=None,
        promotion_end=None,
        status="active",
        online_visible=True,
        stock_quantity=5,
    )
    defaults.update(fields)
    return Product(**defaults)


def _listing(**fields):
    defaults = dict(
        retail_price_override=None,
        promotion_price_override=None,
        promotion_start_override=None,
        promotion_end_override=None,
        stock_quantity=3,
        is_available=True,
    )
    defaults.update(fields)
    return FranchiseProduct(**defaults)


class TestPromotionWindow:
    """is_promotion_active boundaries."""

    def test_no_price_never_active(self):
        assert not is_promotion_active(None, YESTERDAY, TOMORROW, NOW)

    def test_open_ended_promotion_is_never_active(self):
        assert not is_promotion_active(2.5, None, None, NOW)

    def test_inside_window(self):
        assert is_promotion_active(2.5, YESTERDAY, TOMORROW, NOW)

    def test_only_start(self):
        assert is_promotion_active(2.5, YESTERDAY, None, NOW)
        assert not is_promotion_active(2.5, TOMORROW, None, NOW)

    def test_only_end(self):
        assert is_promotion_active(2.5, None, TOMORROW, NOW)
        assert not is_promotion_active(2.5, None, YESTERDAY, NOW)

    def test_boundaries_are_inclusive(self):
        assert is_promotion_active(2.5, NOW, NOW, NOW)


class TestEffectivePrice:
    """resolve_effective_price with and without a franchise overlay."""

    def test_global_retail(self):
        price = resolve_effective_price(_product(), now=NOW)
        assert price.current_price == 4.0
        assert price.promotion_active is False

    def test_global_promotion(self):
        product = _product(promotion_price=3.0, promotion_start=YESTERDAY, promotion_end=TOMORROW)
        price = resolve_effective_price(product, now=NOW)
        assert price.current_price == 3.0
        assert price.promotion_active is True

    def test_expired_promotion_falls_back(self):
        product = _product(promotion_price=3.0, promotion_start=YESTERDAY - timedelta(days=5), promotion_end=YESTERDAY)
        assert resolve_effective_price(product, now=NOW).current_price == 4.0

    def test_override_retail_wins(self):
        price = resolve_effective_price(_product(), _listing(retail_price_override=4.5), now=NOW)
        assert price.retail_price == 4.5
        assert price.current_price == 4.5

    def test_absent_overrides_inherit_product(self):
        product = _product(promotion_price=3.0, promotion_start=YESTERDAY, promotion_end=TOMORROW)
        price = resolve_effective_price(product, _listing(), now=NOW)
        assert price.retail_price == 4.0
        assert price.current_price == 3.0

    def test_override_promotion_with_product_window(self):
        product = _product(promotion_start=YESTERDAY, promotion_end=TOMORROW)
        price = resolve_effective_price(product, _listing(promotion_price_override=2.0), now=NOW)
        assert price.promotion_active is True
        assert price.current_price == 2.0

    def test_override_window_closes_product_promotion(self):
        product = _product(promotion_price=3.0, promotion_start=YESTERDAY, promotion_end=TOMORROW)
        listing = _listing(promotion_end_override=YESTERDAY)
        assert resolve_effective_price(product, listing, now=NOW).current_price == 4.0

    def test_naive_datetimes_are_treated_as_utc(self):
        product = _product(
            promotion_price=3.0,
            promotion_start=YESTERDAY.replace(tzinfo=None),
            promotion_end=TOMORROW.replace(tzinfo=None),
        )
        assert resolve_effective_price(product, now=NOW).promotion_active is True


class TestAvailability:
    def test_global_requires_active_visible_stock(self):
        assert is_available_globally(_product())
        assert not is_available_globally(_product(status="inactive"))
        assert not is_available_globally(_product(online_visible=False))
        assert not is_available_globally(_product(stock_quantity=0))

    def test_franchise_requires_listing(self):
        assert not is_available_in_franchise(None)
        assert is_available_in_franchise(_listing())
        assert not is_available_in_franchise(_listing(is_available=False))
        assert not is_available_in_franchise(_listing(stock_quantity=0))
