"""
Tests for health check endpoints.
"""

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from rest_api.core.middlewares import SecurityHeadersMiddleware
from shared.utils.health import HealthCheckResult, HealthStatus, aggregate_health_checks, sync_health_check_with_timeout


class TestHealthEndpoints:
    """Test health check API endpoints."""

    def test_health_check(self, client):
        """Basic health check should return healthy status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "grabbi-backend"
        assert data["environment"] == "test"

    def test_detailed_health(self, client):
        response = client.get("/api/health/detailed")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["database"]["status"] == "healthy"
        assert data["dependencies"]["database"]["details"] == {"dialect": "sqlite"}
        assert data["dependencies"]["storage"]["details"] == {"bucket": "grabbi-test"}
        # The recording mailer has no SMTP host
        assert data["dependencies"]["email"]["status"] == "disabled"
        assert data["rate_limiter"]["max_requests"] == 1000
        assert data["batch_jobs"] == 0

    def test_detailed_health_without_storage(self, client, app_context):
        app_context.storage = None
        data = client.get("/api/health/detailed").json()
        assert data["dependencies"]["storage"]["status"] == "disabled"
        assert data["status"] == "healthy"

    def test_security_headers(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert "server" not in response.headers
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_server_header_removed(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/ping")
        def ping():
            return PlainTextResponse("pong", headers={"Server": "uvicorn"})

        response = TestClient(app).get("/ping")
        assert response.status_code == 200
        assert response.text == "pong"
        assert "server" not in response.headers
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestHealthHelpers:
    def test_failed_check_degrades(self):
        @sync_health_check_with_timeout(timeout=1.0, component="database")
        def broken():
            raise ConnectionError("connection refused")

        result = broken()
        assert result.status is HealthStatus.UNHEALTHY
        assert result.error == "connection refused"

        health = aggregate_health_checks([result, HealthCheckResult(status=HealthStatus.DISABLED, component="email")])
        assert health["status"] == "degraded"
        assert health["components"]["database"]["error"] == "connection refused"

    def test_disabled_does_not_degrade(self):
        health = aggregate_health_checks([
            HealthCheckResult(status=HealthStatus.HEALTHY, component="database"),
            HealthCheckResult(status=HealthStatus.DISABLED, component="storage"),
        ])
        assert health["status"] == "healthy"
