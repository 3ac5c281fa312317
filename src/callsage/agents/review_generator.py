"""
Review generator: one model call in, one finished `Review` out.

Pipeline
--------
1. Reject an empty scoring matrix (:class:`EmptyMatrixError`) before any
   model call is made.
2. Send the fixed instruction contract (system prompt), the call context
   (user prompt) and, when present, the audio recording as inline media. The
   reply must be JSON matching :class:`ReviewLLMOutput`; its schema is sent
   along as the response schema.
3. Validate the reply. Empty text, broken JSON or a schema mismatch is a
   ``GenerationError(EMPTY_OR_INVALID_RESPONSE)``.
4. Post-process deterministically:

    - strip point timestamps that are malformed or exceed the conversation
      duration (the text of the point is kept);
    - log matrix criteria the model did not score and scores naming unknown
      criteria;
    - compute ``overall_score`` from the scores and the matrix weights; any
      figure the model produced is discarded;
    - copy ``agent_name`` / ``conversation_id`` from the request.

Retries
-------
Only ``TRANSIENT`` and ``EMPTY_OR_INVALID_RESPONSE`` failures are retried,
with exponential backoff (tenacity), up to ``max_attempts`` calls in total.
Validation failures and other service errors propagate immediately.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence

from pydantic import Field, field_validator
from pydantic import ValidationError as SchemaError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from callsage.core.contracts.base import Contract
from callsage.core.contracts.matrix import ScoringMatrix
from callsage.core.contracts.request import ReviewRequest
from callsage.core.contracts.review import Review, ScoreEntry, TimestampedPoint
from callsage.core.errors import (
    EmptyMatrixError,
    GenerationError,
    GenerationErrorKind,
    is_transient,
)
from callsage.core.scoring import (
    compute_overall_score,
    find_missing_criteria,
    find_unknown_criteria,
)
from callsage.core.settings import get_logger, load_settings
from callsage.core.timecode import is_valid_timestamp, within_bound
from callsage.llm.client import LLMClient, MediaPart, ModelServiceError, get_default_client
from callsage.llm.schema import clean_json_text, model_schema

logger = get_logger("callsage.review_generator")

AUDIO_PRIORITY_NOTICE = (
    "An audio recording of the call is attached. The audio recording is the source "
    "of truth: if both an audio recording and a text transcript are provided, "
    "disregard the text transcript and use the audio recording exclusively."
)


# --------------------------------------------------------------------------- #
# Model output contract
# --------------------------------------------------------------------------- #


class ReviewPointOutput(Contract):
    """A good point / improvement area as the model returns it.

    The timestamp is free text here; the generator validates and bounds it
    before building a :class:`TimestampedPoint`.
    """

    text: str = Field(min_length=1, description="One specific observation from the call")
    timestamp: str | None = Field(
        default=None,
        description="HH:MM:SS moment in the call this point refers to; omit if none exists",
    )


class ReviewLLMOutput(Contract):
    """JSON shape the reviewer model must return."""

    agent_name: str | None = Field(default=None, description="The agent name exactly as supplied")
    conversation_id: str | None = Field(
        default=None, description="The conversation id exactly as supplied, if any"
    )
    quick_summary: str = Field(min_length=1, description="One-sentence summary of the call")
    scores: list[ScoreEntry] = Field(
        min_length=1, description="Exactly one entry per scoring-matrix criterion"
    )
    overall_summary: str = Field(
        min_length=1, description="Summary of performance that references every criterion"
    )
    good_points: list[ReviewPointOutput] = Field(default_factory=list)
    areas_for_improvement: list[ReviewPointOutput] = Field(default_factory=list)

    @field_validator("quick_summary", "overall_summary")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


# --------------------------------------------------------------------------- #
# Prompts
# --------------------------------------------------------------------------- #


def system_prompt() -> str:
    """Return the fixed instruction contract for the reviewer model."""
    return (
        "You are a non-biased Quality Management Assistant for an IT Service Desk. "
        "Your task is to review one customer-service call and score the agent against "
        "the scoring matrix you are given, returning a single JSON object.\n\n"
        "Input rules:\n"
        "- If an audio recording is provided, it is the primary source of truth. "
        "If both an audio recording and a text transcript are provided, disregard the "
        "text transcript and use the audio recording exclusively.\n"
        "- If only a text transcript is provided, use that for your analysis.\n\n"
        "Scoring rules:\n"
        "- Score each criterion strictly against its description text only. Do not use "
        "outside knowledge or expectations that the description does not state.\n"
        "- Assign every criterion an integer score from 0 to 5:\n"
        "  5 - Excellent: consistently demonstrated with high quality.\n"
        "  4 - Good: done well with minor opportunities for improvement.\n"
        "  3 - Acceptable: met expectations, could be improved.\n"
        "  2 - Needs Improvement: partially done or lacked quality.\n"
        "  1 - Not Demonstrated: missed or handled poorly.\n"
        "  0 - Absent: no attempt at all.\n"
        "- Return exactly one `scores` entry per criterion in the matrix. Every "
        "`criterion` value must be copied exactly from the matrix; never invent, "
        "rename or merge criteria.\n"
        "- A justification quotes or references specific moments of the call. It must "
        "never restate the numeric score, and must not quote timestamps.\n"
        "- Do not compute an overall score; it is calculated separately.\n\n"
        "Identity rules:\n"
        "- Use the supplied agent name exactly as given in `agentName`. Look for the "
        "agent's first name in the call only to locate the greeting and introduction.\n"
        "- If a conversation id is supplied, echo it back unchanged in `conversationId`.\n\n"
        "Good points and areas for improvement:\n"
        "- For every entry, extract the timestamp (HH:MM:SS) of the moment it refers to "
        "if one exists in the source. Never fabricate a timestamp; omit it instead.\n"
        "- A timestamp must never exceed the conversation duration when one is given.\n"
        "- Avoid repeating the same timestamp within a list unless each entry refers to "
        "a genuinely distinct aspect of that moment.\n\n"
        "Summaries:\n"
        "- `quickSummary` is one sentence.\n"
        "- `overallSummary` must reference every criterion in the matrix.\n\n"
        "Language requirement: all free text, including justifications, summaries and "
        "points, MUST use British English spelling (e.g. 'centre', 'colour', "
        "'behaviour', 'apologise').\n\n"
        "Respond with JSON ONLY, matching the response schema."
    )


def build_user_prompt(request: ReviewRequest) -> str:
    """Render the call context block for ``request``."""
    matrix_json = json.dumps(
        [
            {"criterion": c.criterion, "description": c.description, "weight": c.weight}
            for c in request.scoring_matrix
        ],
        indent=2,
        ensure_ascii=False,
    )

    lines: list[str] = [
        f"Agent name (use exactly): {request.agent_name}",
        f"Conversation id: {request.conversation_id or '(none supplied)'}",
        "Conversation duration (upper bound for timestamps): "
        + (request.conversation_duration or "(unknown)"),
        "---",
        "Call scoring matrix:",
        matrix_json,
        "---",
    ]

    if request.audio_is_authoritative:
        lines.append(AUDIO_PRIORITY_NOTICE)
        if request.call_transcript:
            lines.extend(
                [
                    "---",
                    "Call transcript (ignore it: the audio recording is authoritative):",
                    request.call_transcript,
                ]
            )
    else:
        lines.extend(["Call transcript:", request.call_transcript or ""])

    lines.extend(["---", "Return the review as a JSON object."])
    return "\n".join(lines)


# --------------------------------------------------------------------------- #
# Generator
# --------------------------------------------------------------------------- #


class ReviewGenerator:
    """Generate a finished :class:`Review` for a :class:`ReviewRequest`.

    Parameters
    ----------
    llm:
        Model client. Defaults to the process-wide client.
    model_alias:
        Registry alias or model id; defaults to ``settings.review_model``.
    max_attempts:
        Total model calls allowed for one review (first try included).
    backoff_seconds / backoff_max_seconds:
        Exponential backoff floor and ceiling between retried attempts.
    """

    def __init__(
        self,
        llm: LLMClient | None = None,
        *,
        model_alias: str | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        backoff_max_seconds: float | None = None,
        temperature: float | None = None,
    ) -> None:
        cfg = load_settings()
        self.llm = llm if llm is not None else get_default_client()
        self.model_alias = model_alias or cfg.review_model
        self.max_attempts = max(1, max_attempts if max_attempts is not None else cfg.max_generation_attempts)
        self.backoff_seconds = cfg.backoff_seconds if backoff_seconds is None else backoff_seconds
        self.backoff_max_seconds = (
            cfg.backoff_max_seconds if backoff_max_seconds is None else backoff_max_seconds
        )
        self.temperature = temperature

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def build_messages(self, request: ReviewRequest) -> list[dict[str, str]]:
        """Return the system + user messages sent for ``request``."""
        return [
            {"role": "system", "content": system_prompt()},
            {"role": "user", "content": build_user_prompt(request)},
        ]

    def generate(self, request: ReviewRequest) -> Review:
        """Generate and finalise a review.

        Raises
        ------
        EmptyMatrixError
            If the request carries no criteria (no model call is made).
        GenerationError
            If every allowed attempt failed, or a non-retryable service error
            occurred.
        """
        matrix = request.matrix
        if len(matrix) == 0:
            raise EmptyMatrixError()

        messages = self.build_messages(request)
        media = self._media_for(request)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_seconds,
                min=self.backoff_seconds,
                max=self.backoff_max_seconds,
            ),
            retry=retry_if_exception(
                lambda exc: isinstance(exc, GenerationError) and exc.retryable
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        output = retrying(self._invoke, messages, media)
        return self._finalise(output, request, matrix)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    @staticmethod
    def _media_for(request: ReviewRequest) -> list[MediaPart]:
        if request.audio is None:
            return []
        return [MediaPart(mime_type=request.audio.mime_type, data=request.audio.data)]

    def _invoke(
        self,
        messages: Sequence[Mapping[str, str]],
        media: Sequence[MediaPart],
    ) -> ReviewLLMOutput:
        """Run one model call and validate its reply."""
        try:
            reply = self.llm.generate(
                messages,
                model=self.model_alias,
                temperature=self.temperature,
                response_schema=model_schema(ReviewLLMOutput),
                media=media,
            )
        except ModelServiceError as exc:
            kind = (
                GenerationErrorKind.TRANSIENT if is_transient(exc) else GenerationErrorKind.SERVICE
            )
            raise GenerationError(kind, str(exc)) from exc

        if not reply.text.strip():
            raise GenerationError(
                GenerationErrorKind.EMPTY_OR_INVALID_RESPONSE, "The model returned no content."
            )

        try:
            return ReviewLLMOutput.model_validate_json(clean_json_text(reply.text))
        except SchemaError as exc:
            raise GenerationError(
                GenerationErrorKind.EMPTY_OR_INVALID_RESPONSE,
                f"The model reply does not match the review schema ({exc.error_count()} errors).",
            ) from exc

    def _finalise(
        self,
        output: ReviewLLMOutput,
        request: ReviewRequest,
        matrix: ScoringMatrix,
    ) -> Review:
        missing = find_missing_criteria(output.scores, matrix)
        if missing:
            logger.warning(
                "Model left %d criteria unscored (excluded from the overall score): %s",
                len(missing),
                ", ".join(missing),
            )
        unknown = find_unknown_criteria(output.scores, matrix)
        if unknown:
            logger.warning(
                "Model scored criteria absent from the matrix (ignored for scoring): %s",
                ", ".join(unknown),
            )

        duration = request.conversation_duration
        return Review(
            agent_name=request.agent_name,
            conversation_id=request.conversation_id,
            quick_summary=output.quick_summary,
            overall_score=compute_overall_score(output.scores, matrix),
            scores=list(output.scores),
            overall_summary=output.overall_summary,
            good_points=bound_points(output.good_points, duration, "goodPoints"),
            areas_for_improvement=bound_points(
                output.areas_for_improvement, duration, "areasForImprovement"
            ),
        )


def bound_points(
    points: Sequence[ReviewPointOutput | TimestampedPoint],
    duration: str | None,
    label: str = "points",
) -> list[TimestampedPoint]:
    """Convert model or amended points, dropping unusable timestamps.

    A timestamp is dropped (and a warning logged) when it is not
    ``HH:MM:SS`` / ``[HH:MM:SS]`` or when it exceeds ``duration``.
    """
    out: list[TimestampedPoint] = []
    for point in points:
        ts = point.timestamp.strip() if point.timestamp else None
        if ts and not is_valid_timestamp(ts):
            logger.warning("Dropped malformed timestamp %r from %s entry.", ts, label)
            ts = None
        elif ts and not within_bound(ts, duration):
            logger.warning(
                "Dropped timestamp %s from %s entry: beyond conversation duration %s.",
                ts,
                label,
                duration,
            )
            ts = None
        out.append(TimestampedPoint(text=point.text, timestamp=ts or None))
    return out


__all__ = [
    "AUDIO_PRIORITY_NOTICE",
    "ReviewGenerator",
    "ReviewLLMOutput",
    "ReviewPointOutput",
    "bound_points",
    "build_user_prompt",
    "system_prompt",
]
