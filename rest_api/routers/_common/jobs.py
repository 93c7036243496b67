"""
Batch import helpers shared by the admin and franchise-portal routers.
"""

import uuid

from rest_api.core.context import AppContext
from shared.security.auth import TokenClaims, ensure_franchise_scope
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import BatchImportAccepted, BatchJobOutput, ProductImportRequest


def accept_import(ctx: AppContext, body: ProductImportRequest, claims: TokenClaims) -> BatchImportAccepted:
    """Register the job and queue it on the batch executor."""
    limit = ctx.settings.batch_max_products
    if len(body.products) > limit:
        raise ValidationError(f"products must contain at most {limit} items")
    job = ctx.batch_engine.submit(ctx.batch_executor, body.products, body.delete_missing, claims)
    return BatchImportAccepted(job_id=job.id, status=job.status, total=job.total)


def load_job(ctx: AppContext, job_id: str, claims: TokenClaims | None = None) -> BatchJobOutput:
    """
    Current snapshot of a job.

    With claims, the job must belong to the caller's franchise: jobs of
    other franchises, or admin jobs, are forbidden.
    """
    try:
        parsed = uuid.UUID(job_id)
    except ValueError:
        raise ValidationError("Invalid job ID", job_id=job_id)

    job = ctx.job_store.get(parsed)
    if job is None:
        raise NotFoundError("Job", parsed)
    if claims is not None:
        ensure_franchise_scope(claims, job.franchise_id)
    return BatchJobOutput.model_validate(job)
