"""Pydantic contracts exchanged between Call Sage components."""

from __future__ import annotations

from .chat import (
    AmendmentProposal,
    ChatHistory,
    ChatMessage,
    ChatReply,
    PlainAnswer,
    ReviewUpdates,
    ScoreUpdate,
)
from .matrix import ScoringCriterion, ScoringMatrix
from .request import AudioPayload, ReviewRequest
from .review import Review, ScoreEntry, TimestampedPoint

__all__ = [
    "AmendmentProposal",
    "AudioPayload",
    "ChatHistory",
    "ChatMessage",
    "ChatReply",
    "PlainAnswer",
    "Review",
    "ReviewRequest",
    "ReviewUpdates",
    "ScoreEntry",
    "ScoreUpdate",
    "ScoringCriterion",
    "ScoringMatrix",
    "TimestampedPoint",
]
