"""
Batch job polling.
"""

from fastapi import APIRouter, Depends

from rest_api.core.context import AppContext, get_app_context
from rest_api.routers._common.jobs import load_job
from shared.utils.schemas import BatchJobOutput


router = APIRouter(tags=["admin-jobs"])


@router.get("/jobs/{job_id}", response_model=BatchJobOutput)
def get_job(job_id: str, ctx: AppContext = Depends(get_app_context)) -> BatchJobOutput:
    """Progress and per-row errors. Finished jobs are kept for an hour."""
    return load_job(ctx, job_id)
