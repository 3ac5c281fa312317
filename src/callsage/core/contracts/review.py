"""Review: the structured evaluation of one call against a scoring matrix.

Contract notes
--------------
- ``scores[i].criterion`` names a criterion of the matrix the review was
  generated with; the matrix itself is not embedded.
- ``score`` is an integer in [0, 5]; ``overall_score`` is the weighted
  percentage in [0, 100] computed by :mod:`callsage.core.scoring`. It is
  never taken from the model or from an amendment.
- ``justification`` text must not restate the numeric score or quote a
  timestamp; that is an instruction to the model and is not enforced here.
- A review is created whole by the generator and afterwards only replaced
  through :class:`callsage.agents.amender.ReviewAmender`.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import Field, field_validator

from callsage.core.timecode import TIMESTAMP_PATTERN

from .base import Contract

Score = Annotated[int, Field(ge=0, le=5)]
Percentage = Annotated[float, Field(ge=0.0, le=100.0)]


class ScoreEntry(Contract):
    """Score and justification for one criterion."""

    criterion: str
    score: Score
    justification: str = ""


class TimestampedPoint(Contract):
    """A strength or improvement area, anchored to a moment of the call."""

    text: str
    timestamp: str | None = Field(default=None, pattern=TIMESTAMP_PATTERN)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Review(Contract):
    """Complete generated review of one call."""

    agent_name: str
    conversation_id: str | None = None
    quick_summary: str
    overall_score: Percentage = 0.0
    scores: list[ScoreEntry] = Field(default_factory=list)
    overall_summary: str
    good_points: list[TimestampedPoint] = Field(default_factory=list)
    areas_for_improvement: list[TimestampedPoint] = Field(default_factory=list)

    def score_for(self, criterion: str) -> ScoreEntry | None:
        """Return the score entry for ``criterion``, or None."""
        for entry in self.scores:
            if entry.criterion == criterion:
                return entry
        return None

    @property
    def agent_first_name(self) -> str:
        """First word of the agent name (used for conversational greetings)."""
        parts = self.agent_name.split()
        return parts[0] if parts else self.agent_name


__all__ = ["Percentage", "Review", "Score", "ScoreEntry", "TimestampedPoint"]
