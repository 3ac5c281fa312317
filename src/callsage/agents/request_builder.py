"""
Request builder: shape raw reviewer input into a validated `ReviewRequest`.

Responsibilities
----------------
- Reject input that cannot produce a meaningful review:

    - blank agent name
    - empty scoring matrix
    - neither a transcript nor an audio recording

- Forward both transcript and audio when both are given. The generator's
  instructions make the recording authoritative, so nothing is dropped here.
- Attach a conversation duration as the upper bound for review timestamps:

    1. an explicit ``conversation_duration`` wins (it must be ``HH:MM:SS``);
    2. otherwise the playing time of a WAV recording;
    3. otherwise the last ``[HH:MM:SS]`` marker in the transcript.

  Not finding a duration is fine; the review then has no timestamp bound.

- Snapshot the scoring matrix, so later edits by the reviewer cannot change
  a request that is already in flight.

Every failure is a :class:`callsage.core.errors.ValidationError` with a message
that can be shown to the reviewer as-is.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import ValidationError as SchemaError

from callsage.core.contracts.matrix import ScoringCriterion, ScoringMatrix
from callsage.core.contracts.request import AudioPayload, ReviewRequest
from callsage.core.errors import ValidationError
from callsage.core.settings import get_logger
from callsage.core.timecode import is_valid_timestamp, last_marker, normalise_timestamp, wav_duration

logger = get_logger("callsage.request_builder")

_WAV_MIME_TYPES = frozenset({"audio/wav", "audio/wave", "audio/x-wav", "audio/vnd.wave"})


def derive_duration(transcript: str | None, audio: AudioPayload | None) -> str | None:
    """Best-effort conversation duration from the call data.

    WAV recordings are measured from their header; other audio formats are
    not decoded. Falls back to the last transcript marker.
    """
    if audio is not None and audio.mime_type.lower() in _WAV_MIME_TYPES:
        duration = wav_duration(audio.raw())
        if duration is not None:
            return duration
        logger.warning("Could not read the WAV header; falling back to transcript markers.")
    return last_marker(transcript)


class ReviewRequestBuilder:
    """Validate reviewer input and build a :class:`ReviewRequest`."""

    def build(
        self,
        agent_name: str,
        scoring_matrix: ScoringMatrix | Iterable[ScoringCriterion],
        *,
        transcript: str | None = None,
        audio: AudioPayload | None = None,
        conversation_id: str | None = None,
        conversation_duration: str | None = None,
    ) -> ReviewRequest:
        """Return a validated request.

        Parameters
        ----------
        agent_name:
            Name of the agent under review; echoed verbatim in the review.
        scoring_matrix:
            Criteria to score against. Copied into the request.
        transcript, audio:
            Call data; at least one is required. A whitespace-only transcript
            counts as absent.
        conversation_id:
            Optional identifier echoed back in the review.
        conversation_duration:
            Optional ``HH:MM:SS`` bound; derived from the call data if omitted.

        Raises
        ------
        ValidationError
            If any required input is missing or malformed.
        """
        name = (agent_name or "").strip()
        if not name:
            raise ValidationError("Agent name is required.")

        criteria = [c.model_copy(deep=True) for c in scoring_matrix]
        if not criteria:
            raise ValidationError("The scoring matrix has no criteria; add at least one.")

        text = transcript if transcript and transcript.strip() else None
        if text is None and audio is None:
            raise ValidationError("Provide a call transcript or an audio recording.")

        if conversation_duration is not None and conversation_duration.strip():
            if not is_valid_timestamp(conversation_duration):
                raise ValidationError(
                    f"Conversation duration must be HH:MM:SS, got {conversation_duration!r}."
                )
            duration: str | None = normalise_timestamp(conversation_duration)
        else:
            duration = derive_duration(text, audio)

        cid = conversation_id.strip() if conversation_id and conversation_id.strip() else None

        try:
            request = ReviewRequest(
                agent_name=name,
                conversation_id=cid,
                conversation_duration=duration,
                call_transcript=text,
                audio=audio,
                scoring_matrix=criteria,
            )
        except SchemaError as exc:
            raise ValidationError(f"Invalid review request: {exc}") from exc

        logger.info(
            "Built review request for %r (%d criteria, transcript=%s, audio=%s, duration=%s)",
            name,
            len(criteria),
            text is not None,
            audio is not None,
            duration or "unknown",
        )
        return request


__all__ = ["ReviewRequestBuilder", "derive_duration"]
