"""
Health check endpoints for the REST API.
Provides basic and detailed health status of the service and its dependencies.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from rest_api.core.context import AppContext, get_app_context
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.utils.health import (
    HealthCheckResult,
    HealthStatus,
    aggregate_health_checks,
    sync_health_check_with_timeout,
)


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": "grabbi-backend",
        "environment": settings.environment,
    }


@sync_health_check_with_timeout(timeout=3.0, component="database")
def check_database(db: Session) -> dict:
    db.execute(text("SELECT 1"))
    return {"dialect": db.get_bind().dialect.name}


def storage_status(ctx: AppContext) -> HealthCheckResult:
    if ctx.storage is None:
        return HealthCheckResult(status=HealthStatus.DISABLED, component="storage")
    return HealthCheckResult(
        status=HealthStatus.HEALTHY,
        component="storage",
        details={"bucket": ctx.storage.bucket_name},
    )


def email_status(ctx: AppContext) -> HealthCheckResult:
    status = HealthStatus.HEALTHY if ctx.mailer.configured else HealthStatus.DISABLED
    return HealthCheckResult(status=status, component="email")


@router.get("/health/detailed")
def detailed_health_check(
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """
    Detailed health check that probes the database and reports which
    optional integrations are configured, plus limiter and job stats.

    Returns 503 Service Unavailable if the database is down.
    """
    health = aggregate_health_checks([
        check_database(db),
        storage_status(ctx),
        email_status(ctx),
    ])

    checks = {
        "service": "grabbi-backend",
        "environment": settings.environment,
        "status": health["status"],
        "dependencies": health["components"],
        "rate_limiter": ctx.limiter.get_stats(),
        "batch_jobs": len(ctx.job_store),
    }

    if health["status"] != HealthStatus.HEALTHY.value:
        return JSONResponse(content=checks, status_code=503)

    return checks
