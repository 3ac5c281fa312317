"""Scoring matrix contracts.

A scoring matrix is an *ordered* list of weighted criteria. The reviewer edits
it before a review is requested; generation then works on a snapshot, and the
finished review refers back to it (by criterion name) for weight lookups
during scoring and re-scoring.

Weight semantics
----------------
- ``weight > 0`` : the criterion contributes to the weighted overall score.
- ``weight == 0``: informational only. It is still scored by the model and
  shown in the review, but excluded from score arithmetic. New criteria
  start at 0 until the reviewer assigns a weight.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from typing import Annotated, Any

from pydantic import Field, RootModel, model_validator

from .base import Contract


class ScoringCriterion(Contract):
    """One named, described, weighted aspect of agent performance."""

    id: str = Field(min_length=1, description="Identifier, unique within its matrix")
    criterion: str = Field(description="Display name; reviews match scores on this")
    description: str = Field(default="", description="What the model scores against")
    weight: Annotated[float, Field(ge=0.0)] = 0.0


class ScoringMatrix(RootModel[list[ScoringCriterion]]):
    """Ordered collection of criteria with unique ids.

    The matrix serialises as a bare JSON list, which is also what the model
    receives in its instructions.
    """

    root: list[ScoringCriterion] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> ScoringMatrix:
        seen: set[str] = set()
        for item in self.root:
            if item.id in seen:
                raise ValueError(f"Duplicate criterion id in scoring matrix: {item.id!r}")
            seen.add(item.id)
        return self

    # ----- Sequence protocol -------------------------------------------------
    def __iter__(self) -> Iterator[ScoringCriterion]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, index: int) -> ScoringCriterion:
        return self.root[index]

    # ----- Editing -----------------------------------------------------------
    def add(self, criterion: str, description: str = "", weight: float = 0.0) -> ScoringCriterion:
        """Append a new criterion with a freshly generated id and return it."""
        item = ScoringCriterion(
            id=uuid.uuid4().hex,
            criterion=criterion,
            description=description,
            weight=weight,
        )
        self.root.append(item)
        return item

    def get(self, criterion_id: str) -> ScoringCriterion | None:
        """Return the criterion with ``criterion_id``, or None."""
        for item in self.root:
            if item.id == criterion_id:
                return item
        return None

    def update(self, criterion_id: str, **changes: Any) -> ScoringCriterion:
        """Replace fields of one criterion in place (re-validated).

        Raises
        ------
        KeyError
            If no criterion has ``criterion_id``.
        ValueError
            If ``changes`` tries to alter the id.
        """
        if "id" in changes and changes["id"] != criterion_id:
            raise ValueError("Criterion ids are immutable")
        for index, item in enumerate(self.root):
            if item.id == criterion_id:
                updated = ScoringCriterion.model_validate({**item.model_dump(), **changes})
                self.root[index] = updated
                return updated
        raise KeyError(criterion_id)

    def remove(self, criterion_id: str) -> ScoringCriterion:
        """Remove and return the criterion with ``criterion_id``."""
        for index, item in enumerate(self.root):
            if item.id == criterion_id:
                return self.root.pop(index)
        raise KeyError(criterion_id)

    # ----- Lookups -----------------------------------------------------------
    @property
    def total_weight(self) -> float:
        """Sum of all weights (informational criteria contribute 0)."""
        return sum(item.weight for item in self.root)

    def names(self) -> list[str]:
        """Criterion names in matrix order."""
        return [item.criterion for item in self.root]

    def weights(self) -> dict[str, float]:
        """Map criterion name to weight; the first entry wins on duplicates."""
        out: dict[str, float] = {}
        for item in self.root:
            out.setdefault(item.criterion, item.weight)
        return out

    def weight_for(self, criterion: str) -> float | None:
        """Weight of the criterion named ``criterion``, or None if unknown."""
        return self.weights().get(criterion)

    def merged(self, other: ScoringMatrix) -> ScoringMatrix:
        """Return a new matrix with ``other``'s criteria appended to this one."""
        return ScoringMatrix([*self.root, *other.root])


__all__ = ["ScoringCriterion", "ScoringMatrix"]
