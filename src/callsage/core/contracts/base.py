"""Base model shared by every Call Sage contract.

Python code uses snake_case attributes; the JSON exchanged with the model and
with HTTP clients uses camelCase (``agentName``, ``overallScore``...). The
alias generator bridges the two, and ``populate_by_name`` lets Python callers
construct models with either spelling.

Serialise with ``model_dump(by_alias=True)`` / ``model_dump_json(by_alias=True)``
whenever the payload leaves the process.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Contract(BaseModel):
    """Base envelope for camelCase-on-the-wire contracts."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


__all__ = ["Contract"]
