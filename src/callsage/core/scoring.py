"""Deterministic weighted scoring.

The overall score of a review is never taken from the model. It is recomputed
here, from the per-criterion scores and the weights of the scoring matrix, both
right after generation and after every amendment:

    achieved = Σ score_i * weight_i
    possible = Σ 5 * weight_i
    overall  = achieved / possible * 100      (0 when possible == 0)

over score entries whose criterion matches a matrix criterion with a positive
weight. Criteria missing from the scores are excluded from *both* sums; score
entries naming an unknown criterion are ignored.

All functions are pure.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from callsage.core.contracts.matrix import ScoringCriterion, ScoringMatrix
from callsage.core.contracts.review import ScoreEntry

MAX_CRITERION_SCORE = 5
SCORE_DECIMALS = 2


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """Intermediate sums of a weighted score computation."""

    achieved: float
    possible: float

    @property
    def percentage(self) -> float:
        """Unrounded overall score in [0, 100]."""
        if self.possible <= 0:
            return 0.0
        return self.achieved / self.possible * 100.0


def _weights(matrix: ScoringMatrix | Iterable[ScoringCriterion]) -> Mapping[str, float]:
    if isinstance(matrix, ScoringMatrix):
        return matrix.weights()
    out: dict[str, float] = {}
    for item in matrix:
        out.setdefault(item.criterion, item.weight)
    return out


def score_breakdown(
    scores: Iterable[ScoreEntry],
    matrix: ScoringMatrix | Iterable[ScoringCriterion],
) -> ScoreBreakdown:
    """Return the achieved/possible sums for ``scores`` under ``matrix``."""
    weights = _weights(matrix)
    achieved = 0.0
    possible = 0.0
    for entry in scores:
        weight = weights.get(entry.criterion)
        if weight is None or weight <= 0:
            continue
        achieved += entry.score * weight
        possible += MAX_CRITERION_SCORE * weight
    return ScoreBreakdown(achieved=achieved, possible=possible)


def compute_overall_score(
    scores: Iterable[ScoreEntry],
    matrix: ScoringMatrix | Iterable[ScoringCriterion],
) -> float:
    """Weighted overall percentage, rounded to two decimals (e.g. 73.33)."""
    return round(score_breakdown(scores, matrix).percentage, SCORE_DECIMALS)


def find_missing_criteria(
    scores: Iterable[ScoreEntry],
    matrix: ScoringMatrix | Iterable[ScoringCriterion],
) -> list[str]:
    """Matrix criteria (in matrix order) that have no score entry."""
    scored = {entry.criterion for entry in scores}
    return [name for name in _weights(matrix) if name not in scored]


def find_unknown_criteria(
    scores: Iterable[ScoreEntry],
    matrix: ScoringMatrix | Iterable[ScoringCriterion],
) -> list[str]:
    """Score entries (in score order) naming a criterion absent from the matrix."""
    known = _weights(matrix)
    return [entry.criterion for entry in scores if entry.criterion not in known]


def score_band(score: float) -> str:
    """Traffic-light band of a 0-5 criterion score: red, amber or green.

    Fractional scores are floored, so 3.9 is still amber.
    """
    floored = int(score // 1)
    if floored <= 1:
        return "red"
    if floored <= 3:
        return "amber"
    return "green"


__all__ = [
    "MAX_CRITERION_SCORE",
    "ScoreBreakdown",
    "compute_overall_score",
    "find_missing_criteria",
    "find_unknown_criteria",
    "score_band",
    "score_breakdown",
]
