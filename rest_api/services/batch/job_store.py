"""
In-process registry of batch jobs.

Jobs live only in memory: a restart forfeits their history. Every mutation
happens under one lock and readers receive copies, so a polling client
never observes a half-applied update. Finished jobs are evicted an hour
after completion.
"""

from __future__ import annotations

import copy
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from rest_api.models import utcnow
from shared.config.constants import JobStatus

JOB_TTL = timedelta(hours=1)

OUTCOME_COUNTERS = frozenset({"created", "updated", "deleted", "failed"})


@dataclass(slots=True)
class JobError:
    """One failed row, or one failed image URL, of a batch job."""

    row: int
    product: str
    fields: dict[str, str]


@dataclass(slots=True)
class BatchJob:
    id: uuid.UUID
    total: int
    # Set for jobs submitted from a franchise portal
    franchise_id: uuid.UUID | None = None
    status: str = JobStatus.PENDING
    progress: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    failed: int = 0
    errors: list[JobError] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in JobStatus.TERMINAL

    def recompute_progress(self) -> None:
        if self.status == JobStatus.PROCESSING and self.total > 0:
            # never moves backwards, even when total grows
            self.progress = max(self.progress, min(100, self.processed * 100 // self.total))


class JobStore:
    """
    Thread-safe job registry.

    Usage:
        job = store.create(total=len(rows))
        store.set_processing(job.id)
        store.record_row(job.id, "created")
        store.add_error(job.id, JobError(row=2, product="Milk", fields={"image_url": "..."}))
        store.complete(job.id, JobStatus.COMPLETED)
    """

    def __init__(self, ttl: timedelta = JOB_TTL, clock: Callable[[], datetime] = utcnow):
        self._jobs: dict[uuid.UUID, BatchJob] = {}
        self._lock = threading.RLock()
        self._ttl = ttl
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def cleanup(self) -> int:
        """Evict finished jobs older than the TTL. Returns how many were removed."""
        cutoff = self._clock() - self._ttl
        with self._lock:
            stale = [
                job_id
                for job_id, job in self._jobs.items()
                if (job.completed_at is not None and job.completed_at < cutoff)
                or (job.started_at < cutoff and job.is_terminal)
            ]
            for job_id in stale:
                del self._jobs[job_id]
        return len(stale)

    def create(self, total: int, franchise_id: uuid.UUID | None = None) -> BatchJob:
        self.cleanup()
        now = self._clock()
        job = BatchJob(
            id=uuid.uuid4(),
            total=total,
            franchise_id=franchise_id,
            started_at=now,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._jobs[job.id] = job
            return copy.deepcopy(job)

    def get(self, job_id: uuid.UUID) -> BatchJob | None:
        """Snapshot of a job, or None when unknown or evicted."""
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job is not None else None

    def update(self, job_id: uuid.UUID, mutator: Callable[[BatchJob], None]) -> bool:
        """Apply a mutation under the lock. Returns False for unknown jobs."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            mutator(job)
            job.updated_at = self._clock()
            return True

    def set_processing(self, job_id: uuid.UUID) -> None:
        def _mutate(job: BatchJob) -> None:
            job.status = JobStatus.PROCESSING

        self.update(job_id, _mutate)

    def add_error(self, job_id: uuid.UUID, error: JobError) -> None:
        """Record an error that does not fail its row (image URLs, unknown franchises)."""

        def _mutate(job: BatchJob) -> None:
            job.errors.append(error)

        self.update(job_id, _mutate)

    def record_row(
        self, job_id: uuid.UUID, outcome: str | None, error: JobError | None = None
    ) -> None:
        """
        Finish one unit of work in a single step: bump the outcome counter
        (created/updated/deleted/failed), append the error if any, and
        advance processed and progress together.
        """
        if outcome is not None and outcome not in OUTCOME_COUNTERS:
            raise ValueError(f"unknown outcome {outcome!r}")

        def _mutate(job: BatchJob) -> None:
            if job.processed >= job.total:
                return
            if outcome is not None:
                setattr(job, outcome, getattr(job, outcome) + 1)
            if error is not None:
                job.errors.append(error)
            job.processed += 1
            job.recompute_progress()

        self.update(job_id, _mutate)

    def extend_total(self, job_id: uuid.UUID, extra: int) -> None:
        """Grow the unit count when a job discovers more work (missing-product deletes)."""

        def _mutate(job: BatchJob) -> None:
            job.total += max(0, extra)

        self.update(job_id, _mutate)

    def complete(self, job_id: uuid.UUID, status: str) -> None:
        def _mutate(job: BatchJob) -> None:
            job.status = status
            job.progress = 100
            job.completed_at = self._clock()

        self.update(job_id, _mutate)
