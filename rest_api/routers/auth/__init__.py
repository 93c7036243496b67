"""
Authentication routers - /api/auth/*
Handles signup, login, token refresh, profile and loyalty.
"""

from .routes import router

__all__ = ["router"]
