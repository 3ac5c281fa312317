"""Shared fixtures and fakes for the Call Sage test-suite.

No test talks to a real model: components receive a :class:`FakeLLMClient`
that records every call and replays scripted replies.
"""

from __future__ import annotations

import json
from collections.abc import Generator, Sequence
from typing import Any

import pytest

from callsage.core.contracts.matrix import ScoringCriterion, ScoringMatrix
from callsage.core.contracts.review import Review, ScoreEntry, TimestampedPoint
from callsage.core.settings import load_settings
from callsage.llm.client import ModelReply, get_default_client

Scripted = str | ModelReply | Exception


class FakeLLMClient:
    """Stand-in for :class:`callsage.llm.client.LLMClient`.

    Each ``generate()`` call consumes the next scripted item; the last item is
    reused once the script runs out. Strings become text replies, exceptions
    are raised.
    """

    def __init__(self, *replies: Scripted) -> None:
        self._replies: list[Scripted] = list(replies) or [""]
        self.calls: list[dict[str, Any]] = []

    def generate(self, messages: Sequence[dict[str, str]], **kwargs: Any) -> ModelReply:
        self.calls.append({"messages": [dict(m) for m in messages], **kwargs})
        item = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, ModelReply):
            return item
        return ModelReply(text=item)

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture(autouse=True)  # type: ignore[misc]
def _isolated_settings(monkeypatch: Any) -> Generator[None, None, None]:
    """Test environment with instant retries; caches rebuilt around each test."""
    monkeypatch.setenv("CALLSAGE_ENV", "test")
    monkeypatch.setenv("CALLSAGE_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("CALLSAGE_BACKOFF_MAX_SECONDS", "0")
    load_settings.cache_clear()
    get_default_client.cache_clear()
    yield
    load_settings.cache_clear()
    get_default_client.cache_clear()


@pytest.fixture  # type: ignore[misc]
def matrix() -> ScoringMatrix:
    """Three criteria weighted 10 / 0 / 20 (the middle one informational)."""
    return ScoringMatrix(
        [
            ScoringCriterion(id="a", criterion="Greeting", description="Warm opening", weight=10),
            ScoringCriterion(id="b", criterion="Small Talk", description="Rapport", weight=0),
            ScoringCriterion(id="c", criterion="Resolution", description="Issue fixed", weight=20),
        ]
    )


@pytest.fixture  # type: ignore[misc]
def review() -> Review:
    """Review scored 3 / 5 / 4 against :func:`matrix` (overall 73.33)."""
    return Review(
        agent_name="Jo Read",
        conversation_id="CONV-1",
        quick_summary="Solid call with a quick fix.",
        overall_score=73.33,
        scores=[
            ScoreEntry(criterion="Greeting", score=3, justification="Name given, no team."),
            ScoreEntry(criterion="Small Talk", score=5, justification="Friendly throughout."),
            ScoreEntry(criterion="Resolution", score=4, justification="Fixed, not confirmed."),
        ],
        overall_summary="Greeting, small talk and resolution were all covered.",
        good_points=[TimestampedPoint(text="Clear introduction", timestamp="00:00:02")],
        areas_for_improvement=[TimestampedPoint(text="Confirm the fix", timestamp=None)],
    )


def review_json(**overrides: Any) -> str:
    """Model-style JSON reply for the three-criterion :func:`matrix`."""
    payload: dict[str, Any] = {
        "agentName": "Someone Else",
        "conversationId": "WRONG",
        "quickSummary": "Solid call with a quick fix.",
        "overallScore": 99,
        "scores": [
            {"criterion": "Greeting", "score": 3, "justification": "Name given, no team."},
            {"criterion": "Small Talk", "score": 5, "justification": "Friendly throughout."},
            {"criterion": "Resolution", "score": 4, "justification": "Fixed, not confirmed."},
        ],
        "overallSummary": "Greeting, small talk and resolution were all covered.",
        "goodPoints": [{"text": "Clear introduction", "timestamp": "00:00:02"}],
        "areasForImprovement": [{"text": "Confirm the fix"}],
    }
    payload.update(overrides)
    return json.dumps(payload)
