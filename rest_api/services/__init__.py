"""
Services module for business logic.

CLEAN ARCHITECTURE:
- domain/: Application services (business logic) - USE THESE
- catalog/: Effective pricing, franchise geography and product views
- batch/: Batch product import, image ingestion and the job store

Usage:
    from rest_api.services.domain import OrderService
    service = OrderService(db, mailer, settings)
    order = service.create_order(claims.user_id, body)
"""
