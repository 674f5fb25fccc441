"""Formatter for SubRip Subtitle format (.srt)."""

import re

from chunkscribe.timestamps.codec import format_srt_timestamp, parse_timestamp

# One cue per line: "[<start>-<end>] <content>"
CUE_LINE_RE = re.compile(r"^\[(.+?)-(.+?)\]\s*(.+)$")


def _cue_lines(raw_text: str) -> list[str]:
    return [line.strip() for line in re.split(r"\r?\n", raw_text) if line.strip()]


def to_srt(raw_text: str) -> str:
    """Convert bracket-timestamped engine text to an SRT formatted string.

    Lines that do not have the ``[start-end] content`` shape, or whose
    timecodes do not parse, are dropped. Cues are numbered from 1 in the
    order their lines appear.

    Args:
        raw_text: Merged engine output.

    Returns:
        A string in SRT format. When no line matches, the trimmed input is
        returned unchanged so that text is never silently discarded.

    """
    if not raw_text:
        return ""

    cues: list[str] = []
    for line in _cue_lines(raw_text):
        match = CUE_LINE_RE.match(line)
        if not match:
            continue
        start = parse_timestamp(match.group(1))
        end = parse_timestamp(match.group(2))
        if start is None or end is None:
            continue
        cues.append(
            f"{len(cues) + 1}\n"
            f"{format_srt_timestamp(start)} --> {format_srt_timestamp(end)}\n"
            f"{match.group(3)}\n"
        )

    if not cues:
        return raw_text.strip()
    return "\n".join(cues).strip()


def is_valid_subtitle_format(text: str) -> bool:
    """Return ``True`` when at least one line has the bracketed cue shape."""
    if not text:
        return False
    return any(CUE_LINE_RE.match(line) for line in _cue_lines(text))
