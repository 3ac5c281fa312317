"""ReviewAmender merge semantics."""

from __future__ import annotations

import logging

import pytest

from callsage.agents.amender import ReviewAmender
from callsage.core.contracts.chat import AmendmentProposal, ReviewUpdates
from callsage.core.contracts.matrix import ScoringMatrix
from callsage.core.contracts.review import Review


def _proposal(updates: dict[str, object], explanation: str = "Adjusted.") -> AmendmentProposal:
    return AmendmentProposal(updates=ReviewUpdates.model_validate(updates), explanation=explanation)


def test_untouched_entries_are_preserved(review: Review, matrix: ScoringMatrix) -> None:
    before = {s.criterion: s.model_dump_json() for s in review.scores}
    proposal = _proposal({"scores": [{"criterion": "Small Talk", "score": 2}]})

    result = ReviewAmender.merge(review, proposal, matrix)

    after = {s.criterion: s for s in result.review.scores}
    assert after["Greeting"].model_dump_json() == before["Greeting"]
    assert after["Resolution"].model_dump_json() == before["Resolution"]
    assert after["Small Talk"].score == 2
    # Justification was not supplied, so it is kept.
    assert after["Small Talk"].justification == "Friendly throughout."


def test_unknown_criteria_are_never_appended(review: Review, matrix: ScoringMatrix) -> None:
    proposal = _proposal({"scores": [{"criterion": "Upselling", "score": 5, "justification": "x"}]})

    result = ReviewAmender.merge(review, proposal, matrix)

    assert len(result.review.scores) == len(review.scores)
    assert result.review.score_for("Upselling") is None


def test_overall_score_is_recomputed(review: Review, matrix: ScoringMatrix) -> None:
    proposal = _proposal(
        {"scores": [{"criterion": "Resolution", "score": 5}], "overallScore": 12},
    )

    result = ReviewAmender.merge(review, proposal, matrix)

    # (3*10 + 5*20) / 150 * 100
    assert result.review.overall_score == 86.67


def test_informational_change_keeps_overall_score(review: Review, matrix: ScoringMatrix) -> None:
    proposal = _proposal({"scores": [{"criterion": "Small Talk", "score": 0}]})
    assert ReviewAmender.merge(review, proposal, matrix).review.overall_score == 73.33


def test_top_level_fields_merge_and_identity_is_fixed(review: Review, matrix: ScoringMatrix) -> None:
    proposal = _proposal(
        {
            "quickSummary": "Good call, fix confirmed.",
            "areasForImprovement": [{"text": "Offer further help", "timestamp": "00:01:20"}],
            "agentName": "Someone Else",
        },
        explanation="I have updated the summary as agreed.",
    )

    result = ReviewAmender.merge(review, proposal, matrix)

    assert result.explanation == "I have updated the summary as agreed."
    assert result.review.quick_summary == "Good call, fix confirmed."
    assert result.review.areas_for_improvement[0].text == "Offer further help"
    assert result.review.overall_summary == review.overall_summary
    assert result.review.good_points == review.good_points
    assert result.review.agent_name == "Jo Read"


def test_input_review_is_not_mutated(review: Review, matrix: ScoringMatrix) -> None:
    snapshot = review.model_dump_json()
    ReviewAmender.merge(review, _proposal({"scores": [{"criterion": "Greeting", "score": 0}]}), matrix)
    assert review.model_dump_json() == snapshot


def test_amended_timestamps_are_bounded_by_duration(
    review: Review, matrix: ScoringMatrix, caplog: pytest.LogCaptureFixture
) -> None:
    proposal = _proposal(
        {
            "goodPoints": [
                {"text": "Great close", "timestamp": "05:00:00"},
                {"text": "Warm opening", "timestamp": "[00:00:02]"},
            ],
            "areasForImprovement": [{"text": "Rushed the recap", "timestamp": "00:01:24"}],
        }
    )

    logger = logging.getLogger("callsage.review_generator")
    logger.addHandler(caplog.handler)
    try:
        result = ReviewAmender.merge(review, proposal, matrix, conversation_duration="00:01:23")
    finally:
        logger.removeHandler(caplog.handler)

    good = result.review.good_points
    assert [p.text for p in good] == ["Great close", "Warm opening"]
    assert good[0].timestamp is None
    assert good[1].timestamp == "[00:00:02]"
    assert result.review.areas_for_improvement[0].text == "Rushed the recap"
    assert result.review.areas_for_improvement[0].timestamp is None
    assert "beyond conversation duration 00:01:23" in caplog.text


def test_amended_timestamps_unbounded_without_duration(review: Review, matrix: ScoringMatrix) -> None:
    proposal = _proposal({"goodPoints": [{"text": "Great close", "timestamp": "05:00:00"}]})

    result = ReviewAmender.merge(review, proposal, matrix)

    assert result.review.good_points[0].timestamp == "05:00:00"
