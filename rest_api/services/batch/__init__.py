"""
Batch Services - asynchronous product import.

Provides:
- In-memory job registry with progress and per-row errors (job_store)
- SSRF-guarded image download into object storage (images)
- Row-by-row import with safe deletes (import_engine)
"""

from .job_store import JOB_TTL, BatchJob, JobError, JobStore
from .images import ImageIngestionError, ImageIngestor, IngestResult
from .import_engine import BatchImportEngine, parse_import_date

__all__ = [
    # Jobs
    "JOB_TTL",
    "BatchJob",
    "JobError",
    "JobStore",
    # Images
    "ImageIngestionError",
    "ImageIngestor",
    "IngestResult",
    # Import
    "BatchImportEngine",
    "parse_import_date",
]
