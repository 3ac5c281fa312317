"""
HTTP request/response schemas for the Call Sage API.

All bodies are camelCase on the wire, like every other Call Sage contract.
Reviews, matrices and chat messages reuse the core contracts directly so the
API cannot drift from what the generator and the amender produce.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from callsage.core.contracts.base import Contract
from callsage.core.contracts.chat import AmendmentProposal, ChatMessage, ReviewUpdates
from callsage.core.contracts.matrix import ScoringCriterion
from callsage.core.contracts.review import Review
from callsage.core.timecode import TIMESTAMP_PATTERN


class JobStatus(StrEnum):
    """Lifecycle of a background review job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobInfo(Contract):
    """Tracking record of one review job, as returned by ``GET /jobs/{id}``."""

    job_id: str
    status: JobStatus
    agent_name: str | None = None
    created_at: datetime
    finished_at: datetime | None = None
    error: str | None = None
    result: Review | None = None


class ReviewSubmission(Contract):
    """Body of ``POST /reviews``.

    ``scoringMatrix`` wins over ``profile``; with neither, the built-in
    default matrix is used. Audio travels as a base64 data URI.
    """

    agent_name: str
    conversation_id: str | None = None
    conversation_duration: str | None = None
    call_transcript: str | None = None
    audio_data_uri: str | None = Field(
        default=None, description="data:audio/wav;base64,<encoded_data>"
    )
    scoring_matrix: list[ScoringCriterion] | None = None
    profile: str | None = Field(default=None, description="Name of a saved scoring profile")


class ChatRequest(Contract):
    """Body of ``POST /reviews/chat``: one question plus the caller-owned state."""

    review: Review
    scoring_matrix: list[ScoringCriterion]
    transcript: str | None = None
    conversation_duration: str | None = Field(default=None, pattern=TIMESTAMP_PATTERN)
    history: list[ChatMessage] = Field(default_factory=list)
    question: str = Field(min_length=1)


class ChatResponse(Contract):
    """Answer to a chat question.

    ``amendment`` / ``amendedReview`` are present only when the model proposed
    a correction; the caller adopts ``amendedReview`` if the reviewer agrees.
    """

    answer: str
    amendment: AmendmentProposal | None = None
    amended_review: Review | None = None


class AmendRequest(Contract):
    """Body of ``POST /reviews/amend``: apply updates to a review.

    Amended timestamps are bounded by ``conversationDuration``, or else by the
    last marker of ``transcript``.
    """

    review: Review
    scoring_matrix: list[ScoringCriterion]
    updates: ReviewUpdates
    explanation: str = ""
    transcript: str | None = None
    conversation_duration: str | None = Field(default=None, pattern=TIMESTAMP_PATTERN)


class AmendResponse(Contract):
    """Merged review plus the explanation to display."""

    review: Review
    explanation: str


__all__ = [
    "AmendRequest",
    "AmendResponse",
    "ChatRequest",
    "ChatResponse",
    "JobInfo",
    "JobStatus",
    "ReviewSubmission",
]
