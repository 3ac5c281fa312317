"""Review request contracts.

A :class:`ReviewRequest` is the validated input of one review generation. It is
normally produced by :class:`callsage.agents.request_builder.ReviewRequestBuilder`,
which applies the required/optional field rules and derives the conversation
duration; constructing it directly enforces the same structural invariants.

Source priority
---------------
At least one of ``call_transcript`` / ``audio`` must be present. When both are
present, both are forwarded, but the recording is the source of truth and the
transcript is ignored by the model.
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from pathlib import Path

from pydantic import Field, field_validator, model_validator

from callsage.core.timecode import TIMESTAMP_PATTERN

from .base import Contract
from .matrix import ScoringCriterion, ScoringMatrix

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


class AudioPayload(Contract):
    """Base64-encoded call recording with its MIME type."""

    mime_type: str = Field(description="MIME type, e.g. 'audio/wav'")
    data: str = Field(min_length=1, description="Base64-encoded audio bytes")

    @field_validator("mime_type")
    @classmethod
    def _audio_mime(cls, v: str) -> str:
        if not v.startswith("audio/"):
            raise ValueError(f"Expected an audio/* MIME type, got {v!r}")
        return v

    @field_validator("data")
    @classmethod
    def _base64(cls, v: str) -> str:
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Audio data is not valid base64") from exc
        return v

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str) -> AudioPayload:
        """Encode raw audio bytes."""
        return cls(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))

    @classmethod
    def from_file(cls, path: Path, mime_type: str | None = None) -> AudioPayload:
        """Read and encode an audio file; the MIME type is guessed if omitted."""
        guessed = mime_type or mimetypes.guess_type(path.name)[0]
        if not guessed:
            raise ValueError(f"Cannot determine the audio type of {path.name!r}")
        if guessed == "audio/x-wav":
            guessed = "audio/wav"
        return cls.from_bytes(path.read_bytes(), guessed)

    @classmethod
    def from_data_uri(cls, uri: str) -> AudioPayload:
        """Parse ``data:<mime>;base64,<data>``."""
        match = _DATA_URI_RE.match(uri.strip())
        if match is None:
            raise ValueError("Audio must be a base64 data URI: data:<mime>;base64,<data>")
        return cls(mime_type=match.group("mime"), data=match.group("data"))

    def to_data_uri(self) -> str:
        """Render as a ``data:`` URI."""
        return f"data:{self.mime_type};base64,{self.data}"

    def raw(self) -> bytes:
        """Decoded audio bytes."""
        return base64.b64decode(self.data)


class ReviewRequest(Contract):
    """Validated input of one review generation."""

    agent_name: str = Field(min_length=1, description="Agent name used verbatim in the review")
    conversation_id: str | None = None
    conversation_duration: str | None = Field(
        default=None,
        pattern=TIMESTAMP_PATTERN,
        description="HH:MM:SS upper bound for any timestamp in the review",
    )
    call_transcript: str | None = None
    audio: AudioPayload | None = None
    scoring_matrix: list[ScoringCriterion] = Field(default_factory=list)

    @field_validator("agent_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("agent_name must not be blank")
        return stripped

    @model_validator(mode="after")
    def _has_source(self) -> ReviewRequest:
        if not (self.call_transcript and self.call_transcript.strip()) and self.audio is None:
            raise ValueError("A call transcript or an audio recording is required")
        return self

    @property
    def audio_is_authoritative(self) -> bool:
        """True when a recording is attached (the transcript is then ignored)."""
        return self.audio is not None

    @property
    def matrix(self) -> ScoringMatrix:
        """The scoring matrix as a :class:`ScoringMatrix` view."""
        return ScoringMatrix(list(self.scoring_matrix))


__all__ = ["AudioPayload", "ReviewRequest"]
