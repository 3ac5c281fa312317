"""Schema helpers for structured LLM output.

Pydantic emits JSON Schema with ``$defs``/``$ref`` indirection, ``anyOf`` for
optional fields and descriptive keys (``title``, ``default``) that Gemini's
``responseSchema`` (an OpenAPI 3 subset) rejects. :func:`gemini_schema` turns a
Pydantic schema into that subset:

- ``$ref`` targets are inlined and ``$defs`` dropped;
- ``anyOf: [X, {"type": "null"}]`` becomes ``X`` with ``nullable: true``;
- unsupported keys are removed.

:func:`strict_object_schema` prepares the same schema for OpenAI-compatible
``json_schema`` response formats, which want ``additionalProperties: false`` on
every object.
"""

from __future__ import annotations

import copy
from typing import Any

from pydantic import BaseModel

_GEMINI_KEYS = frozenset(
    {
        "type",
        "format",
        "description",
        "nullable",
        "enum",
        "properties",
        "required",
        "items",
        "minItems",
        "maxItems",
        "minimum",
        "maximum",
        "propertyOrdering",
    }
)


def model_schema(model: type[BaseModel]) -> dict[str, Any]:
    """JSON Schema of ``model`` using its camelCase aliases."""
    return model.model_json_schema(by_alias=True)


def _resolve(node: Any, defs: dict[str, Any]) -> Any:
    if isinstance(node, list):
        return [_resolve(item, defs) for item in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node:
        name = str(node["$ref"]).rsplit("/", 1)[-1]
        merged = {**copy.deepcopy(defs.get(name, {})), **{k: v for k, v in node.items() if k != "$ref"}}
        return _resolve(merged, defs)

    if "anyOf" in node:
        options = [opt for opt in node["anyOf"] if opt.get("type") != "null"]
        nullable = len(options) != len(node["anyOf"])
        if len(options) == 1:
            rest = {k: v for k, v in node.items() if k != "anyOf"}
            resolved = _resolve({**options[0], **rest}, defs)
            if nullable:
                resolved["nullable"] = True
            return resolved

    out: dict[str, Any] = {}
    for key, value in node.items():
        if key == "properties" and isinstance(value, dict):
            out[key] = {name: _resolve(prop, defs) for name, prop in value.items()}
        elif key in _GEMINI_KEYS:
            out[key] = _resolve(value, defs)
    return out


def gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert a Pydantic JSON Schema into Gemini's ``responseSchema`` subset."""
    defs = dict(schema.get("$defs", {}))
    return _resolve({k: v for k, v in schema.items() if k != "$defs"}, defs)


def strict_object_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Add ``additionalProperties: false`` to every object type in ``schema``."""

    def fix(obj: Any) -> Any:
        if isinstance(obj, dict):
            if obj.get("type") == "object":
                obj["additionalProperties"] = False
            for key, value in obj.items():
                obj[key] = fix(value)
        elif isinstance(obj, list):
            return [fix(item) for item in obj]
        return obj

    return fix(copy.deepcopy(schema))


def clean_json_text(raw: str) -> str:
    """Extract the JSON object from a possibly chatty model reply.

    1. Strips Markdown code fences (```json ... ```).
    2. Keeps the substring between the first '{' and the last '}'.
    """
    text = raw.strip()

    if text.startswith("```"):
        first_newline = text.find("\n")
        if first_newline != -1:
            text = text[first_newline:].strip()
        if text.endswith("```"):
            text = text[:-3].strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        text = text[start : end + 1]

    return text


__all__ = ["clean_json_text", "gemini_schema", "model_schema", "strict_object_schema"]
