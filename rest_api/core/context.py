"""
Application context.

Process-wide collaborators (rate limiter, job store, storage client, mailer,
batch executor) live on one AppContext built at startup and stored on
app.state.ctx. Handlers receive it through the get_app_context dependency.
"""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from fastapi import Request
from sqlalchemy.orm import Session

from rest_api.services.batch import BatchImportEngine, ImageIngestor, JobStore
from shared.config.logging import rest_api_logger as logger
from shared.config.settings import Settings
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.email import EmailService
from shared.infrastructure.storage import StorageClient, StorageError
from shared.security.rate_limit import TokenBucketLimiter

BATCH_WORKERS = 2


@dataclass
class AppContext:
    """Named holders for what would otherwise be module singletons."""

    settings: Settings
    limiter: TokenBucketLimiter
    job_store: JobStore
    mailer: EmailService
    storage: StorageClient | None
    ingestor: ImageIngestor
    batch_executor: Executor
    session_factory: Callable[[], Session] = SessionLocal
    _engine: BatchImportEngine | None = field(default=None, repr=False)

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> "AppContext":
        try:
            storage = StorageClient.from_settings(cfg)
        except (StorageError, FileNotFoundError, ValueError) as exc:
            # Uploads and image ingestion report "storage not configured"
            logger.warning("Object storage unavailable", error=str(exc))
            storage = None

        return cls(
            settings=cfg,
            limiter=TokenBucketLimiter(cfg.rate_limit_requests, cfg.rate_limit_window_seconds),
            job_store=JobStore(ttl=timedelta(seconds=cfg.batch_job_ttl_seconds)),
            mailer=EmailService.from_settings(cfg),
            storage=storage,
            ingestor=ImageIngestor(
                storage,
                timeout=cfg.image_fetch_timeout,
                max_bytes=cfg.max_upload_bytes,
                workers=cfg.batch_image_workers,
            ),
            batch_executor=ThreadPoolExecutor(max_workers=BATCH_WORKERS, thread_name_prefix="batch"),
            session_factory=session_factory,
        )

    @property
    def batch_engine(self) -> BatchImportEngine:
        if self._engine is None:
            self._engine = BatchImportEngine(self.session_factory, self.job_store, self.ingestor)
        return self._engine

    def close(self) -> None:
        """Release pools and clients. Running batch jobs finish first."""
        if isinstance(self.batch_executor, ThreadPoolExecutor):
            self.batch_executor.shutdown(wait=True)
        self.mailer.shutdown()
        self.ingestor.close()


def get_app_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context installed at startup."""
    return request.app.state.ctx
