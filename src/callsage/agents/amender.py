"""
Review amender: merge a chat-proposed correction into a review.

Merge rules
-----------
- Top-level fields present in the proposal's updates (``quick_summary``,
  ``overall_summary``, ``good_points``, ``areas_for_improvement``) replace the
  current values wholesale.
- Amended ``good_points`` / ``areas_for_improvement`` go through the same
  timestamp bound as generated ones: a timestamp past the conversation
  duration is dropped and the point text kept.
- ``scores`` is a *partial* list matched by criterion name. A matched entry
  takes the provided ``score`` / ``justification``; current entries without a
  match are left exactly as they were; proposal entries without a match are
  ignored, so an amendment can never add a criterion.
- ``overall_score`` is recomputed from the merged scores and the matrix the
  review was generated with. ``agent_name`` / ``conversation_id`` cannot be
  amended.

The input review is never mutated; a new :class:`Review` is returned.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from callsage.agents.review_generator import bound_points
from callsage.core.contracts.chat import AmendmentProposal, ReviewUpdates, ScoreUpdate
from callsage.core.contracts.matrix import ScoringCriterion, ScoringMatrix
from callsage.core.contracts.review import Review, ScoreEntry
from callsage.core.scoring import compute_overall_score
from callsage.core.settings import get_logger

logger = get_logger("callsage.amender")

_SCALAR_FIELDS: tuple[str, ...] = (
    "quick_summary",
    "overall_summary",
    "good_points",
    "areas_for_improvement",
)
_POINT_FIELDS: dict[str, str] = {
    "good_points": "goodPoints",
    "areas_for_improvement": "areasForImprovement",
}


@dataclass(frozen=True, slots=True)
class AmendmentResult:
    """Merged review plus the explanation to show as the chat reply."""

    review: Review
    explanation: str


def _merge_scores(current: list[ScoreEntry], updates: Iterable[ScoreUpdate]) -> list[ScoreEntry]:
    by_name: dict[str, ScoreUpdate] = {}
    known = {entry.criterion for entry in current}
    for update in updates:
        if update.criterion not in known:
            logger.info("Ignoring amendment for unknown criterion %r.", update.criterion)
            continue
        by_name[update.criterion] = update

    merged: list[ScoreEntry] = []
    for entry in current:
        update = by_name.get(entry.criterion)
        if update is None:
            merged.append(entry)
            continue
        changes: dict[str, object] = {}
        if update.score is not None:
            changes["score"] = update.score
        if update.justification is not None:
            changes["justification"] = update.justification
        merged.append(entry.model_copy(update=changes) if changes else entry)
    return merged


class ReviewAmender:
    """Apply :class:`AmendmentProposal` objects to reviews."""

    @staticmethod
    def apply_updates(
        current: Review,
        updates: ReviewUpdates,
        scoring_matrix: ScoringMatrix | Iterable[ScoringCriterion],
        conversation_duration: str | None = None,
    ) -> Review:
        """Return ``current`` with ``updates`` merged and the score recomputed."""
        changes: dict[str, object] = {}
        for name in _SCALAR_FIELDS:
            if name in updates.model_fields_set and getattr(updates, name) is not None:
                value = getattr(updates, name)
                if name in _POINT_FIELDS:
                    value = bound_points(value, conversation_duration, _POINT_FIELDS[name])
                changes[name] = list(value) if isinstance(value, list) else value

        scores = list(current.scores)
        if "scores" in updates.model_fields_set and updates.scores is not None:
            scores = _merge_scores(scores, updates.scores)
        changes["scores"] = scores
        changes["overall_score"] = compute_overall_score(scores, scoring_matrix)

        # Round-trip through validation so the result honours every Review constraint.
        merged = current.model_dump()
        merged.update(
            {
                key: [item.model_dump() for item in value] if isinstance(value, list) else value
                for key, value in changes.items()
            }
        )
        return Review.model_validate(merged)

    @classmethod
    def merge(
        cls,
        current: Review,
        proposal: AmendmentProposal,
        scoring_matrix: ScoringMatrix | Iterable[ScoringCriterion],
        conversation_duration: str | None = None,
    ) -> AmendmentResult:
        """Merge ``proposal`` into ``current``.

        Parameters
        ----------
        current:
            Review currently shown to the reviewer.
        proposal:
            Correction produced by the chat model.
        scoring_matrix:
            Matrix the review was generated with (weights for re-scoring).
        conversation_duration:
            Upper bound for amended point timestamps; ``None`` disables the check.

        Returns
        -------
        AmendmentResult
            The new review and the proposal's explanation.
        """
        review = cls.apply_updates(current, proposal.updates, scoring_matrix, conversation_duration)
        logger.info(
            "Applied amendment to review of %r: overall score %.2f -> %.2f",
            current.agent_name,
            current.overall_score,
            review.overall_score,
        )
        return AmendmentResult(review=review, explanation=proposal.explanation)


__all__ = ["AmendmentResult", "ReviewAmender"]
