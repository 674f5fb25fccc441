"""Flexible timecode parsing, shifting and formatting.

The speech-to-text engine emits bracketed ranges such as
``[00:56:557-00:59:777]`` whose fields vary in width and count. Timecodes are
read right-to-left as milliseconds, seconds, minutes and hours; any missing
leading field defaults to zero.

Two output shapes exist: ``HH:MM:SS:mmm`` for rewriting engine text in place
and ``HH:MM:SS,mmm`` for SRT cues.
"""

from __future__ import annotations

import math
import re

from chunkscribe.timestamps.models import Timestamp

__all__ = [
    "adjust_timestamps_in_text",
    "format_srt_timestamp",
    "format_timestamp",
    "parse_timestamp",
    "shift_timestamp",
]

# Any bracketed span; the start/end split happens on the first "-".
_BRACKET_RE = re.compile(r"\[([^\]]*?)\]")


def _to_int(field: str) -> int | None:
    """Return ``field`` as a non-negative integer or ``None`` when not numeric."""
    return int(field) if field.isascii() and field.isdigit() else None


def parse_timestamp(text: str) -> Timestamp | None:
    """Parse a 2-4 field colon-separated timecode.

    The last field is milliseconds and is normalised by its width: one digit
    is tenths (``"5"`` → 500), two digits are hundredths (``"60"`` → 600),
    three or more digits are taken as-is.

    Args:
        text: Raw timecode such as ``"01:02:03:450"``, ``"02:03:45"`` or ``"3:5"``.

    Returns:
        Timestamp | None: Parsed fields, or ``None`` when the field count is
            outside 2-4 or any field is not a non-negative integer.

    Examples:
        >>> parse_timestamp("1:5").milliseconds
        500
        >>> parse_timestamp("00:01:02:003")
        Timestamp(hours=0, minutes=1, seconds=2, milliseconds=3)
    """
    parts = [p.strip() for p in text.strip().split(":")]
    if not 2 <= len(parts) <= 4:
        return None

    ms_str = parts[-1]
    sec_str = parts[-2]
    min_str = parts[-3] if len(parts) >= 3 else "0"
    hr_str = parts[0] if len(parts) == 4 else "0"

    fields = [_to_int(s) for s in (hr_str, min_str, sec_str, ms_str)]
    if any(f is None for f in fields):
        return None
    hours, minutes, seconds, ms = fields

    if len(ms_str) == 1:
        ms *= 100
    elif len(ms_str) == 2:
        ms *= 10

    return Timestamp(hours=hours, minutes=minutes, seconds=seconds, milliseconds=ms)


def shift_timestamp(ts: Timestamp, offset_seconds: float) -> Timestamp:
    """Add ``offset_seconds`` to the whole-second part of ``ts``.

    Hours, minutes and seconds are recomputed from the shifted total with
    carry. The milliseconds field is copied through unchanged and never
    takes part in the carry, so any fractional part of ``offset_seconds`` is
    discarded.

    Args:
        ts: Timecode to shift.
        offset_seconds: Offset to add, in seconds.

    Returns:
        Timestamp: The shifted timecode.
    """
    total = ts.hours * 3600 + ts.minutes * 60 + ts.seconds + offset_seconds
    return Timestamp(
        hours=math.floor(total / 3600),
        minutes=math.floor((total % 3600) / 60),
        seconds=math.floor(total % 60),
        milliseconds=ts.milliseconds,
    )


def _padded_fields(ts: Timestamp) -> tuple[str, str, str, str]:
    return (
        f"{max(0, ts.hours):02d}",
        f"{max(0, ts.minutes):02d}",
        f"{max(0, ts.seconds):02d}",
        f"{max(0, ts.milliseconds):03d}",
    )


def format_timestamp(ts: Timestamp) -> str:
    """Format ``ts`` as ``HH:MM:SS:mmm`` (the engine's bracket notation)."""
    hh, mm, ss, mmm = _padded_fields(ts)
    return f"{hh}:{mm}:{ss}:{mmm}"


def format_srt_timestamp(ts: Timestamp) -> str:
    """Format ``ts`` as ``HH:MM:SS,mmm`` as required by SubRip cues."""
    hh, mm, ss, mmm = _padded_fields(ts)
    return f"{hh}:{mm}:{ss},{mmm}"


def adjust_timestamps_in_text(raw_text: str, offset_seconds: float) -> str:
    """Shift every ``[start-end]`` bracket in ``raw_text`` by ``offset_seconds``.

    Brackets whose contents do not split into two parseable timecodes are
    left exactly as they were, as is all text outside brackets.

    Args:
        raw_text: Engine output for a single segment.
        offset_seconds: Start of that segment in the full timeline.

    Returns:
        str: Text with rewritten brackets.
    """
    if not raw_text or offset_seconds == 0:
        return raw_text

    def _rewrite(match: re.Match[str]) -> str:
        start_str, sep, end_str = match.group(1).partition("-")
        if not sep or not start_str or not end_str:
            return match.group(0)
        start = parse_timestamp(start_str)
        end = parse_timestamp(end_str)
        if start is None or end is None:
            return match.group(0)
        shifted_start = format_timestamp(shift_timestamp(start, offset_seconds))
        shifted_end = format_timestamp(shift_timestamp(end, offset_seconds))
        return f"[{shifted_start}-{shifted_end}]"

    return _BRACKET_RE.sub(_rewrite, raw_text)
