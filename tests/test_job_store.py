"""Lifecycle of review job records."""

from __future__ import annotations

from callsage.api.job_store import ReviewJobStore, get_job_store
from callsage.api.schemas import JobStatus
from callsage.core.contracts.review import Review


def test_open_returns_pending_job_for_agent() -> None:
    store = ReviewJobStore()

    job = store.open("Jo Read")

    assert job.status is JobStatus.PENDING
    assert job.agent_name == "Jo Read"
    assert job.finished_at is None
    assert store.snapshot(job.job_id) == job


def test_completed_job_carries_review_and_finish_time(review: Review) -> None:
    store = ReviewJobStore()
    job_id = store.open("Jo Read").job_id

    store.start(job_id)
    assert store.snapshot(job_id).status is JobStatus.PROCESSING  # type: ignore[union-attr]
    store.complete(job_id, review)

    done = store.snapshot(job_id)
    assert done is not None
    assert done.status is JobStatus.COMPLETED
    assert done.result == review
    assert done.finished_at is not None
    assert done.finished_at >= done.created_at


def test_final_states_are_not_overwritten(review: Review) -> None:
    store = ReviewJobStore()
    job_id = store.open().job_id
    store.fail(job_id, "AI_REQUEST_FAILED: TRANSIENT: overloaded")

    store.complete(job_id, review)
    store.start(job_id)

    job = store.snapshot(job_id)
    assert job is not None
    assert job.status is JobStatus.FAILED
    assert job.result is None
    assert job.error == "AI_REQUEST_FAILED: TRANSIENT: overloaded"


def test_snapshots_do_not_alias_stored_records() -> None:
    store = ReviewJobStore()
    job = store.open("Jo Read")

    job.status = JobStatus.FAILED

    assert store.snapshot(job.job_id).status is JobStatus.PENDING  # type: ignore[union-attr]


def test_unknown_jobs_are_ignored() -> None:
    store = ReviewJobStore()

    store.start("missing")
    store.fail("missing", "boom")

    assert store.snapshot("missing") is None


def test_api_store_is_shared() -> None:
    assert get_job_store() is get_job_store()
    assert get_job_store() is ReviewJobStore.shared()
