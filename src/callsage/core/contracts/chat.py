"""Chat contracts for conversations about a generated review.

Reply variants
--------------
A model reply in a review chat is one of two things, modelled as a tagged
union discriminated on ``kind``:

- :class:`PlainAnswer`       : free text shown to the reviewer.
- :class:`AmendmentProposal` : a structured correction to the review plus an
  explanation to show as the chat reply. It is never applied automatically.

:class:`ReviewUpdates` lists the only fields an amendment may touch. Any other
key the model sends (``overallScore``, ``agentName``...) is dropped during
validation.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated, Literal

from pydantic import Field

from .base import Contract
from .review import Score, TimestampedPoint

Role = Literal["user", "model"]


class ChatMessage(Contract):
    """One turn of a review conversation."""

    role: Role
    content: str


class ChatHistory:
    """Append-only, ordered message log scoped to one review session.

    Attributes
    ----------
    _messages : list[ChatMessage]
        Messages in the order they were exchanged.
    """

    __slots__ = ("_messages",)

    def __init__(self, messages: list[ChatMessage] | None = None) -> None:
        self._messages: list[ChatMessage] = list(messages or [])

    def append(self, role: Role, content: str) -> ChatMessage:
        """Record a message and return it."""
        message = ChatMessage(role=role, content=content)
        self._messages.append(message)
        return message

    def clear(self) -> None:
        """Forget every message (a new review starts a new conversation)."""
        self._messages.clear()

    def messages(self) -> tuple[ChatMessage, ...]:
        """Return the messages as an immutable tuple."""
        return tuple(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))

    def __len__(self) -> int:
        return len(self._messages)


class ScoreUpdate(Contract):
    """Partial correction of one score entry, matched by criterion name."""

    criterion: str
    score: Score | None = None
    justification: str | None = None


class ReviewUpdates(Contract):
    """Amendable subset of :class:`~callsage.core.contracts.review.Review`.

    Only fields explicitly present in the payload are merged; use
    ``model_fields_set`` to tell "absent" from "set to empty".
    """

    quick_summary: str | None = None
    overall_summary: str | None = None
    good_points: list[TimestampedPoint] | None = None
    areas_for_improvement: list[TimestampedPoint] | None = None
    scores: list[ScoreUpdate] | None = None

    def is_empty(self) -> bool:
        """True when the proposal carries no usable change."""
        return not any(getattr(self, name) is not None for name in self.model_fields_set)


class PlainAnswer(Contract):
    """Free-text model reply."""

    kind: Literal["answer"] = "answer"
    text: str


class AmendmentProposal(Contract):
    """Model-proposed correction of a review, awaiting the reviewer's approval."""

    kind: Literal["amendment"] = "amendment"
    updates: ReviewUpdates
    explanation: str


ChatReply = Annotated[PlainAnswer | AmendmentProposal, Field(discriminator="kind")]


__all__ = [
    "AmendmentProposal",
    "ChatHistory",
    "ChatMessage",
    "ChatReply",
    "PlainAnswer",
    "ReviewUpdates",
    "Role",
    "ScoreUpdate",
]
