"""Disk-backed store for named scoring-matrix profiles.

Reviewers keep several matrices (one per team or call type) and pick one per
review. Each profile is one JSON file holding the bare criteria list:

- Default directory: ``settings.profile_dir`` (``CALLSAGE_PROFILE_DIR``),
  falling back to ``artifacts/profiles/``
- Filename pattern:  ``<slug>.json`` where the slug is the lower-cased profile
  name with non-alphanumerics collapsed to ``-``

Usage
-----
>>> store = ProfileStore()
>>> store.save("service-desk", default_matrix())
>>> store.load("service-desk")
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import ValidationError as SchemaError

from callsage.core.contracts.matrix import ScoringMatrix
from callsage.core.settings import get_logger, load_settings

logger = get_logger("callsage.profiles")

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def profile_slug(name: str) -> str:
    """Return the filename-safe slug for a profile name."""
    slug = _SLUG_RE.sub("-", name.strip().lower()).strip("-")
    if not slug:
        raise ValueError(f"Profile name {name!r} has no usable characters")
    return slug


class ProfileStore:
    """Persist scoring matrices to disk as JSON files."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir: Path = base_dir if base_dir is not None else load_settings().profile_dir

    def path_for(self, name: str) -> Path:
        """Return the file path a profile called ``name`` is stored at."""
        return self.base_dir / f"{profile_slug(name)}.json"

    def save(self, name: str, matrix: ScoringMatrix) -> Path:
        """Write ``matrix`` under ``name`` (overwriting) and return the path."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(name)
        path.write_text(matrix.model_dump_json(by_alias=True, indent=2) + "\n", encoding="utf-8")
        logger.info("Saved scoring profile %r (%d criteria) to %s", name, len(matrix), path)
        return path

    def load(self, name: str) -> ScoringMatrix:
        """Load the profile called ``name``.

        Raises
        ------
        FileNotFoundError
            If no such profile exists.
        ValueError
            If the file does not hold a valid scoring matrix.
        """
        path = self.path_for(name)
        try:
            return ScoringMatrix.model_validate_json(path.read_text(encoding="utf-8"))
        except SchemaError as exc:
            raise ValueError(f"Profile {name!r} at {path} is not a valid scoring matrix") from exc

    def names(self) -> list[str]:
        """Return the slugs of all stored profiles, sorted."""
        if not self.base_dir.is_dir():
            return []
        return sorted(p.stem for p in self.base_dir.glob("*.json"))

    def delete(self, name: str) -> bool:
        """Remove a profile; return False if it did not exist."""
        path = self.path_for(name)
        if not path.exists():
            return False
        path.unlink()
        return True


def load_matrix_file(path: Path) -> ScoringMatrix:
    """Load a scoring matrix from an arbitrary JSON file (bare list of criteria)."""
    try:
        return ScoringMatrix.model_validate_json(path.read_text(encoding="utf-8"))
    except SchemaError as exc:
        raise ValueError(f"{path} is not a valid scoring matrix: {exc}") from exc


__all__ = ["ProfileStore", "load_matrix_file", "profile_slug"]
