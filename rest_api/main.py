"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI

from rest_api.core.cors import configure_cors
from rest_api.core.errors import register_exception_handlers
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers.admin import router as admin_router
from rest_api.routers.auth import router as auth_router
from rest_api.routers.franchise import router as franchise_router
from rest_api.routers.public import (
    catalog_router,
    franchises_router,
    health_router,
    promotions_router,
)
from rest_api.routers.shop import cart_router, orders_router
from shared.config.settings import settings


# Create FastAPI application
app = FastAPI(
    title="Grabbi REST API",
    description="Multi-franchise grocery delivery API",
    version="1.0.0",
    lifespan=lifespan,
)
# Populated by the lifespan handler, or installed directly by tests
app.state.ctx = None

register_exception_handlers(app)
register_middlewares(app)
configure_cors(app)


# =============================================================================
# Include Routers
# =============================================================================

# Public
app.include_router(health_router)
app.include_router(catalog_router)
app.include_router(franchises_router)
app.include_router(promotions_router)

# Customer
app.include_router(auth_router)
app.include_router(cart_router)
app.include_router(orders_router)

# Back office
app.include_router(franchise_router)
app.include_router(admin_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=settings.environment == "development",
    )
