"""
API routes for reviews, review chat and amendments.

Endpoints
---------
- `GET /matrix/default`: The built-in scoring matrix.
- `POST /reviews`: Validate input and submit a review job (async, 202).
- `GET /jobs/{job_id}`: Poll the status and retrieve the review.
- `POST /reviews/chat`: Ask one question about a review (sync).
- `POST /reviews/amend`: Merge updates into a review (sync, no model call).

Design Decisions
----------------
- **Asynchronous Handoff**: review generation takes tens of seconds, so the
  POST endpoint validates the request, schedules the work and returns 202.
  Invalid input still fails fast with 400.
- **Caller-Owned State**: chat history and the current review travel with
  every chat request; the server keeps no session.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from callsage.agents.amender import ReviewAmender
from callsage.agents.request_builder import ReviewRequestBuilder
from callsage.api.background import run_review_task
from callsage.api.job_store import get_job_store
from callsage.api.schemas import (
    AmendRequest,
    AmendResponse,
    ChatRequest,
    ChatResponse,
    JobInfo,
    ReviewSubmission,
)
from callsage.core.contracts.chat import AmendmentProposal
from callsage.core.contracts.matrix import ScoringCriterion, ScoringMatrix
from callsage.core.contracts.request import AudioPayload
from callsage.core.defaults import default_matrix
from callsage.core.errors import ValidationError
from callsage.core.profiles import ProfileStore
from callsage.llm.client import LLMClient, get_default_client
from callsage.pipelines.call_review import ChatContext, chat_about_review

router = APIRouter(tags=["Reviews"])


def get_llm() -> LLMClient:
    """Dependency returning the process-wide model client."""
    return get_default_client()


def _resolve_matrix(submission: ReviewSubmission) -> ScoringMatrix:
    if submission.scoring_matrix is not None:
        return ScoringMatrix(submission.scoring_matrix)
    if submission.profile:
        try:
            return ProfileStore().load(submission.profile)
        except FileNotFoundError as exc:
            raise ValidationError(f"Unknown scoring profile {submission.profile!r}.") from exc
    return default_matrix()


@router.get(
    "/matrix/default",
    response_model=list[ScoringCriterion],
    summary="Get the built-in scoring matrix",
)
async def get_default_matrix() -> list[ScoringCriterion]:
    """Return the default eight-criterion service-desk matrix."""
    return list(default_matrix())


@router.post(
    "/reviews",
    response_model=JobInfo,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a call for review",
)
async def submit_review(
    submission: ReviewSubmission,
    background_tasks: BackgroundTasks,
    llm: LLMClient = Depends(get_llm),
) -> JobInfo:
    """
    Validate the call data and dispatch a background review job.

    Client Workflow
    ---------------
    1. Receive `jobId` from this response.
    2. Poll `GET /jobs/{jobId}` until status is 'completed' or 'failed'.
    """
    audio = None
    if submission.audio_data_uri:
        try:
            audio = AudioPayload.from_data_uri(submission.audio_data_uri)
        except ValueError as exc:
            raise ValidationError(f"Invalid audio payload: {exc}") from exc

    request = ReviewRequestBuilder().build(
        submission.agent_name,
        _resolve_matrix(submission),
        transcript=submission.call_transcript,
        audio=audio,
        conversation_id=submission.conversation_id,
        conversation_duration=submission.conversation_duration,
    )

    job = get_job_store().open(request.agent_name)
    background_tasks.add_task(run_review_task, job_id=job.job_id, request=request, llm=llm)
    return job


@router.get(
    "/jobs/{job_id}",
    response_model=JobInfo,
    summary="Get review job status and result",
)
async def get_job_status(job_id: str) -> JobInfo:
    """Retrieve the current status or the finished review of a job."""
    job = get_job_store().snapshot(job_id)
    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return job


@router.post(
    "/reviews/chat",
    response_model=ChatResponse,
    summary="Ask a question about a review",
)
def chat(body: ChatRequest, llm: LLMClient = Depends(get_llm)) -> ChatResponse:
    """
    Answer one question about a review.

    When the model proposes a correction, the response carries the proposal
    and the merged review preview; nothing is applied server-side.
    """
    answer = chat_about_review(
        body.history,
        body.question,
        ChatContext(
            review=body.review,
            scoring_matrix=ScoringMatrix(body.scoring_matrix),
            transcript=body.transcript,
            conversation_duration=body.conversation_duration,
        ),
        llm=llm,
    )
    return ChatResponse(
        answer=answer.answer,
        amendment=answer.proposal,
        amended_review=answer.amended_review,
    )


@router.post(
    "/reviews/amend",
    response_model=AmendResponse,
    summary="Apply an amendment to a review",
)
async def amend(body: AmendRequest) -> AmendResponse:
    """Merge ``updates`` into ``review`` and recompute the overall score."""
    context = ChatContext(
        review=body.review,
        scoring_matrix=ScoringMatrix(body.scoring_matrix),
        transcript=body.transcript,
        conversation_duration=body.conversation_duration,
    )
    result = ReviewAmender.merge(
        context.review,
        AmendmentProposal(updates=body.updates, explanation=body.explanation),
        context.scoring_matrix,
        context.duration_bound,
    )
    return AmendResponse(review=result.review, explanation=result.explanation)


__all__ = ["get_llm", "router"]
