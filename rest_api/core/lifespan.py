"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from rest_api.core.context import AppContext
from rest_api.models import Base
from rest_api.seed import seed
from shared.config.logging import rest_api_logger as logger
from shared.config.logging import setup_logging
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal, engine
from shared.security.auth import require_jwt_secret


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    config_errors = settings.validate_required()
    if config_errors:
        for error in config_errors:
            logger.critical("Configuration error", error=error)
        raise RuntimeError(f"Configuration errors: {'; '.join(config_errors)}")
    for warning in settings.validate_optional():
        logger.warning("Configuration warning", warning=warning)
    require_jwt_secret()

    logger.info("Starting REST API", port=settings.rest_api_port, env=settings.environment)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    with SessionLocal() as db:
        seed(db, settings)

    # Tests install their own context before startup
    if getattr(app.state, "ctx", None) is None:
        app.state.ctx = AppContext.from_settings(settings)
    ctx: AppContext = app.state.ctx

    ctx.limiter.start_reaper(
        interval=settings.rate_limit_cleanup_interval,
        max_idle=settings.rate_limit_max_idle,
    )
    logger.info(
        "Rate limiter started",
        max_requests=ctx.limiter.max_requests,
        window_seconds=ctx.limiter.window_seconds,
    )

    yield

    logger.info("Shutting down REST API")

    await ctx.limiter.stop_reaper()
    ctx.close()
    logger.info("Background workers stopped")
