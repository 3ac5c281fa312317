"""
Review job records behind ``POST /reviews`` and ``GET /jobs/{id}``.

A job is opened by the endpoint once the submission has been validated, then
moved along by :func:`callsage.api.background.run_review_task`::

    PENDING -> PROCESSING -> COMPLETED (review attached)
                          \\-> FAILED   (error message attached)

COMPLETED and FAILED are final; later transitions for the same job are
ignored. Records live in process memory only, so a restart forgets every
job. Keeping a finished review is the caller's business (the CLI writes
review files).
"""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime
from typing import Any, ClassVar

from callsage.api.schemas import JobInfo, JobStatus
from callsage.core.contracts.review import Review
from callsage.core.settings import get_logger

logger = get_logger("callsage.api")

_FINAL = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class ReviewJobStore:
    """Thread-safe map of job id to :class:`JobInfo`.

    Background tasks run in Starlette's thread pool while the polling
    endpoint reads from the event loop, so every access goes through a lock
    and readers receive copies.
    """

    _shared: ClassVar[ReviewJobStore | None] = None

    def __init__(self) -> None:
        self._jobs: dict[str, JobInfo] = {}
        self._lock = threading.Lock()

    @classmethod
    def shared(cls) -> ReviewJobStore:
        """The process-wide store used by the API."""
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    def open(self, agent_name: str | None = None) -> JobInfo:
        """Register a PENDING job for one call review and return a copy of it."""
        job = JobInfo(
            job_id=str(uuid.uuid4()),
            status=JobStatus.PENDING,
            agent_name=agent_name,
            created_at=datetime.now(UTC),
        )
        with self._lock:
            self._jobs[job.job_id] = job
        return job.model_copy()

    def snapshot(self, job_id: str) -> JobInfo | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job is not None else None

    def start(self, job_id: str) -> None:
        self._transition(job_id, JobStatus.PROCESSING)

    def complete(self, job_id: str, review: Review) -> None:
        self._transition(job_id, JobStatus.COMPLETED, result=review)

    def fail(self, job_id: str, error: str) -> None:
        self._transition(job_id, JobStatus.FAILED, error=error)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()

    def _transition(self, job_id: str, status: JobStatus, **fields: Any) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                logger.warning("Ignoring %s for unknown job %s", status.value, job_id)
                return
            if job.status in _FINAL:
                logger.warning(
                    "Ignoring %s for job %s: already %s", status.value, job_id, job.status.value
                )
                return
            job.status = status
            for name, value in fields.items():
                setattr(job, name, value)
            if status in _FINAL:
                job.finished_at = datetime.now(UTC)


def get_job_store() -> ReviewJobStore:
    return ReviewJobStore.shared()


__all__ = ["ReviewJobStore", "get_job_store"]
