"""Error taxonomy shared by the request builder, generator and chat session.

Categories
----------
- :class:`ValidationError`  : bad caller input (blank agent name, empty matrix,
  no transcript/audio). Fatal and never retried. Subclasses ``ValueError`` so
  HTTP layers can map it to *400 Bad Request* without importing this module.
- :class:`GenerationError`  : review generation failed. Carries a
  :class:`GenerationErrorKind`; only ``TRANSIENT`` and
  ``EMPTY_OR_INVALID_RESPONSE`` are retryable.
- :class:`EmptyMatrixError` : generation asked to score against no criteria.
  Both a ``GenerationError`` and a ``ValidationError``.
- :class:`ChatError`        : one chat turn failed; the session stays usable.
- :class:`AmendmentError`   : a tool call carried unparsable arguments. Callers
  degrade it to "no amendment" instead of surfacing it.

Service-facing errors share the greppable ``AI_REQUEST_FAILED`` prefix, so a
front-end can show a generic "service busy" message while keeping the raw
detail behind a "show details" affordance.
"""

from __future__ import annotations

from enum import StrEnum

AI_REQUEST_FAILED = "AI_REQUEST_FAILED"

# Lower-cased markers that identify overload / availability failures in
# provider error messages.
_TRANSIENT_MARKERS: tuple[str, ...] = (
    "503",
    "502",
    "504",
    "429",
    "overloaded",
    "unavailable",
    "rate limit",
    "too many requests",
    "timeout",
    "timed out",
    "temporarily",
    "connection",
    "network error",
)


class CallSageError(Exception):
    """Base class for all Call Sage errors."""


class ValidationError(CallSageError, ValueError):
    """Raised when caller-supplied input cannot form a valid request."""


class GenerationErrorKind(StrEnum):
    """Why a review generation failed."""

    EMPTY_MATRIX = "EMPTY_MATRIX"
    EMPTY_OR_INVALID_RESPONSE = "EMPTY_OR_INVALID_RESPONSE"
    TRANSIENT = "TRANSIENT"
    SERVICE = "SERVICE"


class GenerationError(CallSageError):
    """Review generation failed.

    Parameters
    ----------
    kind:
        Failure category; drives retry decisions.
    detail:
        Underlying message (provider error text, validation summary, ...).
    """

    def __init__(self, kind: GenerationErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        message = f"{AI_REQUEST_FAILED}: {kind.value}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Return True if another attempt could plausibly succeed."""
        return self.kind in (
            GenerationErrorKind.TRANSIENT,
            GenerationErrorKind.EMPTY_OR_INVALID_RESPONSE,
        )


class EmptyMatrixError(GenerationError, ValidationError):
    """Generation was asked to score against an empty scoring matrix.

    It is both a :class:`GenerationError` (kind ``EMPTY_MATRIX``, raised by the
    generator) and a :class:`ValidationError` (fatal caller mistake, never
    retried, no model call made).
    """

    def __init__(self, detail: str = "The scoring matrix has no criteria.") -> None:
        self.kind = GenerationErrorKind.EMPTY_MATRIX
        self.detail = detail
        Exception.__init__(self, f"{GenerationErrorKind.EMPTY_MATRIX.value}: {detail}")


class ChatError(CallSageError):
    """A single chat turn about a review failed."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(
            f"{AI_REQUEST_FAILED}: The AI service was unable to process the chat request. "
            f"Raw error: {detail}"
        )


class AmendmentError(CallSageError):
    """A proposed amendment could not be parsed into review updates."""


def is_transient(exc: BaseException) -> bool:
    """Return True if ``exc`` looks like an overload/availability failure."""
    text = str(exc).lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


__all__ = [
    "AI_REQUEST_FAILED",
    "AmendmentError",
    "CallSageError",
    "ChatError",
    "EmptyMatrixError",
    "GenerationError",
    "GenerationErrorKind",
    "ValidationError",
    "is_transient",
]
