"""
Franchise catalog imports.

Owners upload product rows; the job only touches this franchise's
listings and can only be polled from this franchise.
"""

from fastapi import APIRouter, Depends, status

from rest_api.core.context import AppContext, get_app_context
from rest_api.routers._common.jobs import accept_import, load_job
from shared.security.auth import TokenClaims, require_franchise, require_franchise_owner
from shared.utils.schemas import BatchImportAccepted, BatchJobOutput, ProductImportRequest


router = APIRouter(prefix="/api/franchise", tags=["franchise-portal"])


@router.post(
    "/products/batch-import",
    response_model=BatchImportAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def batch_import(
    body: ProductImportRequest,
    claims: TokenClaims = Depends(require_franchise_owner),
    ctx: AppContext = Depends(get_app_context),
) -> BatchImportAccepted:
    return accept_import(ctx, body, claims)


@router.get("/jobs/{job_id}", response_model=BatchJobOutput)
def get_job(
    job_id: str,
    claims: TokenClaims = Depends(require_franchise),
    ctx: AppContext = Depends(get_app_context),
) -> BatchJobOutput:
    return load_job(ctx, job_id, claims)
