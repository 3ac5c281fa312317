"""ReviewGenerator: prompt contract, validation, scoring, timestamps, retries."""

from __future__ import annotations

import logging
from typing import Any

import pytest
from conftest import FakeLLMClient, review_json

from callsage.agents.request_builder import ReviewRequestBuilder
from callsage.agents.review_generator import AUDIO_PRIORITY_NOTICE, ReviewGenerator
from callsage.core.contracts.matrix import ScoringMatrix
from callsage.core.contracts.request import AudioPayload, ReviewRequest
from callsage.core.errors import (
    EmptyMatrixError,
    GenerationError,
    GenerationErrorKind,
    ValidationError,
)
from callsage.llm.client import ModelServiceError
from callsage.pipelines.call_review import generate_review

TRANSCRIPT = "[00:00:02] Agent: Hello, Jo speaking.\n[00:01:23] Agent: Goodbye."
AUDIO = AudioPayload(mime_type="audio/mpeg", data="SUQzBAAAAAAA")


def _request(matrix: ScoringMatrix, **kwargs: Any) -> ReviewRequest:
    kwargs.setdefault("transcript", TRANSCRIPT)
    return ReviewRequestBuilder().build("Jo Read", matrix, conversation_id="CONV-1", **kwargs)


def _generator(llm: FakeLLMClient, **kwargs: Any) -> ReviewGenerator:
    kwargs.setdefault("backoff_seconds", 0.0)
    kwargs.setdefault("backoff_max_seconds", 0.0)
    return ReviewGenerator(llm, **kwargs)  # type: ignore[arg-type]


def test_overall_score_is_recomputed_and_identity_overwritten(matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(review_json())

    review = _generator(llm).generate(_request(matrix))

    assert review.overall_score == 73.33
    assert review.agent_name == "Jo Read"
    assert review.conversation_id == "CONV-1"
    assert [s.criterion for s in review.scores] == ["Greeting", "Small Talk", "Resolution"]
    assert review.good_points[0].timestamp == "00:00:02"
    assert review.areas_for_improvement[0].timestamp is None
    assert llm.call_count == 1


def test_empty_matrix_fails_before_any_model_call() -> None:
    llm = FakeLLMClient(review_json())
    request = ReviewRequest(agent_name="Jo", call_transcript=TRANSCRIPT, scoring_matrix=[])

    with pytest.raises(ValidationError) as excinfo:
        generate_review(request, llm=llm)  # type: ignore[arg-type]

    assert isinstance(excinfo.value, EmptyMatrixError)
    assert isinstance(excinfo.value, GenerationError)
    assert excinfo.value.kind is GenerationErrorKind.EMPTY_MATRIX
    assert llm.call_count == 0


def test_out_of_bound_and_malformed_timestamps_are_stripped(
    matrix: ScoringMatrix, caplog: pytest.LogCaptureFixture
) -> None:
    reply = review_json(
        goodPoints=[
            {"text": "Within the call", "timestamp": "[00:01:00]"},
            {"text": "After the call ended", "timestamp": "00:05:00"},
        ],
        areasForImprovement=[{"text": "Odd stamp", "timestamp": "1:2"}],
    )
    logger = logging.getLogger("callsage.review_generator")
    logger.addHandler(caplog.handler)
    try:
        review = _generator(FakeLLMClient(reply)).generate(_request(matrix))
    finally:
        logger.removeHandler(caplog.handler)

    assert review.good_points[0].timestamp == "[00:01:00]"
    assert review.good_points[1].timestamp is None
    assert review.good_points[1].text == "After the call ended"
    assert review.areas_for_improvement[0].timestamp is None
    assert "beyond conversation duration 00:01:23" in caplog.text
    assert "malformed timestamp" in caplog.text


def test_missing_and_unknown_criteria_are_logged(
    matrix: ScoringMatrix, caplog: pytest.LogCaptureFixture
) -> None:
    reply = review_json(
        scores=[
            {"criterion": "Greeting", "score": 4, "justification": "Good."},
            {"criterion": "Upselling", "score": 0, "justification": "None."},
        ]
    )
    logger = logging.getLogger("callsage.review_generator")
    logger.addHandler(caplog.handler)
    try:
        review = _generator(FakeLLMClient(reply)).generate(_request(matrix))
    finally:
        logger.removeHandler(caplog.handler)

    assert review.overall_score == 80.0
    assert "Small Talk, Resolution" in caplog.text
    assert "Upselling" in caplog.text


def test_prompt_carries_the_instruction_contract(matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(review_json())
    _generator(llm).generate(_request(matrix))

    call = llm.calls[0]
    system, user = call["messages"][0]["content"], call["messages"][1]["content"]
    assert "description text only" in system
    assert "British English" in system
    assert "never restate the numeric score" in system
    assert "Never fabricate a timestamp" in system
    assert "exactly one `scores` entry per criterion" in system
    assert "Agent name (use exactly): Jo Read" in user
    assert "00:01:23" in user
    assert '"criterion": "Resolution"' in user
    assert call["response_schema"]["properties"]["scores"]["type"] == "array"
    assert call["media"] == []


def test_audio_marked_authoritative_when_both_sources_given(matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(review_json())
    generator = _generator(llm)
    request = _request(matrix, audio=AUDIO)

    user_prompt = generator.build_messages(request)[1]["content"]
    assert AUDIO_PRIORITY_NOTICE in user_prompt
    assert "ignore it: the audio recording is authoritative" in user_prompt

    generator.generate(request)
    media = llm.calls[0]["media"]
    assert media[0].mime_type == "audio/mpeg"
    assert media[0].data == AUDIO.data


def test_transcript_only_prompt_has_no_audio_notice(matrix: ScoringMatrix) -> None:
    user_prompt = _generator(FakeLLMClient()).build_messages(_request(matrix))[1]["content"]
    assert AUDIO_PRIORITY_NOTICE not in user_prompt
    assert "Call transcript:\n[00:00:02]" in user_prompt


def test_invalid_reply_is_retried_then_succeeds(matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient("", "not json at all", review_json())

    review = _generator(llm, max_attempts=3).generate(_request(matrix))

    assert review.overall_score == 73.33
    assert llm.call_count == 3


def test_transient_errors_exhaust_attempts(matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(ModelServiceError("LLM HTTP error 503: model is overloaded", status=503))

    with pytest.raises(GenerationError) as excinfo:
        _generator(llm, max_attempts=2).generate(_request(matrix))

    assert excinfo.value.kind is GenerationErrorKind.TRANSIENT
    assert str(excinfo.value).startswith("AI_REQUEST_FAILED: TRANSIENT")
    assert "overloaded" in str(excinfo.value)
    assert llm.call_count == 2


def test_dropped_connection_is_retried_as_transient(matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(
        ModelServiceError("LLM connection error: RemoteDisconnected: Remote end closed connection without response"),
        review_json(),
    )

    review = _generator(llm, max_attempts=2).generate(_request(matrix))

    assert review.overall_score == 73.33
    assert llm.call_count == 2


def test_non_transient_service_error_is_not_retried(matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(ModelServiceError("LLM HTTP error 400: API key not valid", status=400))

    with pytest.raises(GenerationError) as excinfo:
        _generator(llm, max_attempts=3).generate(_request(matrix))

    assert excinfo.value.kind is GenerationErrorKind.SERVICE
    assert llm.call_count == 1


def test_schema_mismatch_is_empty_or_invalid(matrix: ScoringMatrix) -> None:
    llm = FakeLLMClient(review_json(scores=[{"criterion": "Greeting", "score": 9}]))

    with pytest.raises(GenerationError) as excinfo:
        _generator(llm, max_attempts=1).generate(_request(matrix))

    assert excinfo.value.kind is GenerationErrorKind.EMPTY_OR_INVALID_RESPONSE
    assert excinfo.value.retryable
