"""Call timecodes: parsing, formatting and upper-bound checks.

Transcripts exported by the contact-centre tooling carry bracketed markers such
as ``[00:01:23]`` at the start of each utterance. Review points reference those
moments either bracketed or bare (``00:01:23``). Both spellings are accepted
everywhere in this module; output is always the bare ``HH:MM:SS`` form.

The conversation duration is the upper bound for any timestamp quoted in a
review. It is derived from the audio header when the recording is a WAV file,
otherwise from the last marker in the transcript.
"""

from __future__ import annotations

import io
import re
import wave

_TIMESTAMP_RE = re.compile(r"^(?:\[(\d{2}):(\d{2}):(\d{2})\]|(\d{2}):(\d{2}):(\d{2}))$")
_MARKER_RE = re.compile(r"\[(\d{2}):(\d{2}):(\d{2})\]")

TIMESTAMP_PATTERN = r"^(\[\d{2}:\d{2}:\d{2}\]|\d{2}:\d{2}:\d{2})$"


def _parts(value: str) -> tuple[int, int, int]:
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        raise ValueError(f"Not a HH:MM:SS timestamp: {value!r}")
    groups = [g for g in match.groups() if g is not None]
    hours, minutes, seconds = (int(g) for g in groups)
    if minutes >= 60 or seconds >= 60:
        raise ValueError(f"Minutes and seconds must be below 60: {value!r}")
    return hours, minutes, seconds


def is_valid_timestamp(value: str) -> bool:
    """Return True if ``value`` is ``HH:MM:SS`` or ``[HH:MM:SS]``."""
    try:
        _parts(value)
    except ValueError:
        return False
    return True


def time_to_seconds(value: str) -> int:
    """Convert ``HH:MM:SS`` (optionally bracketed) to a number of seconds.

    Raises
    ------
    ValueError
        If ``value`` is not a well-formed timestamp.
    """
    hours, minutes, seconds = _parts(value)
    return hours * 3600 + minutes * 60 + seconds


def seconds_to_time(total: float) -> str:
    """Format a number of seconds as ``HH:MM:SS`` (fractions are truncated)."""
    if total < 0:
        raise ValueError("Duration cannot be negative")
    whole = int(total)
    hours, rest = divmod(whole, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def normalise_timestamp(value: str) -> str:
    """Return the bare ``HH:MM:SS`` spelling of a valid timestamp."""
    return seconds_to_time(time_to_seconds(value))


def within_bound(timestamp: str, duration: str | None) -> bool:
    """Return True if ``timestamp`` does not exceed ``duration``.

    A missing duration imposes no bound.
    """
    if duration is None:
        return True
    return time_to_seconds(timestamp) <= time_to_seconds(duration)


def last_marker(transcript: str | None) -> str | None:
    """Return the last ``[HH:MM:SS]`` marker in ``transcript`` (bare form).

    Markers with out-of-range minutes/seconds are skipped. Returns None when
    the transcript carries no usable marker.
    """
    if not transcript:
        return None
    found: str | None = None
    for match in _MARKER_RE.finditer(transcript):
        candidate = match.group(0)
        if is_valid_timestamp(candidate):
            found = normalise_timestamp(candidate)
    return found


def wav_duration(raw: bytes) -> str | None:
    """Read the playing time of a WAV recording from its header.

    Returns None if ``raw`` is not a readable PCM WAV stream.
    """
    try:
        with wave.open(io.BytesIO(raw), "rb") as wav:
            frames = wav.getnframes()
            rate = wav.getframerate()
    except (wave.Error, EOFError):
        return None
    if rate <= 0:
        return None
    return seconds_to_time(frames / rate)


__all__ = [
    "TIMESTAMP_PATTERN",
    "is_valid_timestamp",
    "last_marker",
    "normalise_timestamp",
    "seconds_to_time",
    "time_to_seconds",
    "wav_duration",
    "within_bound",
]
