"""
Tests for the token-bucket rate limiter and its middleware.
"""

import asyncio

import pytest

from shared.security.rate_limit import TokenBucketLimiter

from tests.conftest import FakeClock


class TestTokenBucketLimiter:
    """Bucket arithmetic with an injected clock."""

    def test_burst_up_to_capacity(self):
        limiter = TokenBucketLimiter(3, 60, clock=FakeClock())
        assert [limiter.allow("1.2.3.4") for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self):
        limiter = TokenBucketLimiter(1, 60, clock=FakeClock())
        assert limiter.allow("1.1.1.1")
        assert limiter.allow("2.2.2.2")
        assert not limiter.allow("1.1.1.1")

    def test_refills_continuously(self):
        clock = FakeClock()
        limiter = TokenBucketLimiter(2, 60, clock=clock)
        assert limiter.allow("k") and limiter.allow("k")
        assert not limiter.allow("k")

        clock.advance(29)
        assert not limiter.allow("k")
        clock.advance(2)
        assert limiter.allow("k")

    def test_refill_is_capped(self):
        clock = FakeClock()
        limiter = TokenBucketLimiter(2, 60, clock=clock)
        limiter.allow("k")
        clock.advance(3600)
        assert [limiter.allow("k") for _ in range(3)] == [True, True, False]

    def test_retry_after(self):
        limiter = TokenBucketLimiter(1, 60, clock=FakeClock())
        assert limiter.retry_after("k") == 0
        limiter.allow("k")
        assert limiter.retry_after("k") == 60

    def test_cleanup_stale(self):
        clock = FakeClock()
        limiter = TokenBucketLimiter(5, 60, clock=clock)
        limiter.allow("old")
        clock.advance(700)
        limiter.allow("fresh")

        assert limiter.cleanup_stale(max_idle=600) == 1
        assert limiter.tracked_count == 1
        assert limiter.get_stats()["total_reaped"] == 1

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            TokenBucketLimiter(0, 60)
        with pytest.raises(ValueError):
            TokenBucketLimiter(1, 0)

    def test_reaper_starts_and_stops(self):
        limiter = TokenBucketLimiter(1, 60)

        async def run():
            task = limiter.start_reaper(interval=3600, max_idle=600)
            assert not task.done()
            await limiter.stop_reaper()
            assert task.done()

        asyncio.run(run())


class TestRateLimitMiddleware:
    """Admission control on /api/* routes."""

    def test_one_request_per_minute(self, client, app_context, seed_product):
        clock = FakeClock()
        app_context.limiter = TokenBucketLimiter(1, 60, clock=clock)

        assert client.get("/api/products").status_code == 200

        response = client.get("/api/products")
        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests. Please try again later."
        assert int(response.headers["Retry-After"]) >= 1

        clock.advance(61)
        assert client.get("/api/products").status_code == 200

    def test_health_is_exempt(self, client, app_context):
        app_context.limiter = TokenBucketLimiter(1, 60, clock=FakeClock())

        for _ in range(3):
            assert client.get("/api/health").status_code == 200

    def test_denials_are_counted(self, client, app_context):
        app_context.limiter = TokenBucketLimiter(1, 60, clock=FakeClock())
        client.get("/api/categories")
        client.get("/api/categories")

        stats = app_context.limiter.get_stats()
        assert stats["total_allowed"] == 1
        assert stats["total_rejected"] == 1
