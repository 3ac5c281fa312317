"""
Background task runner for review generation.

This module provides the worker function used by FastAPI's `BackgroundTasks`.
It wraps the synchronous `generate_review` call with exception handling and
job-state bookkeeping.
"""

from __future__ import annotations

from callsage.api.job_store import get_job_store
from callsage.core.contracts.request import ReviewRequest
from callsage.core.errors import CallSageError
from callsage.core.settings import get_logger
from callsage.llm.client import LLMClient
from callsage.pipelines.call_review import generate_review

logger = get_logger("callsage.api")


def run_review_task(job_id: str, request: ReviewRequest, llm: LLMClient | None = None) -> None:
    """Generate the review for ``request`` and record the outcome.

    Never raises: failures are stored on the job as FAILED with the error
    message (service errors keep their ``AI_REQUEST_FAILED`` prefix).

    Parameters
    ----------
    job_id:
        The UUID of the job to update.
    request:
        Validated review request (built before the job was scheduled).
    llm:
        Model client resolved by the endpoint.
    """
    store = get_job_store()
    store.start(job_id)

    try:
        review = generate_review(request, llm=llm)
    except CallSageError as exc:
        logger.warning("Review job %s failed: %s", job_id, exc)
        store.fail(job_id, str(exc))
        return
    except Exception as exc:
        logger.exception("Review job %s crashed", job_id)
        store.fail(job_id, f"Review Error: {exc}")
        return

    store.complete(job_id, review)


__all__ = ["run_review_task"]
