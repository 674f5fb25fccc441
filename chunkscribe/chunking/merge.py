"""Re-align per-segment transcripts onto the original timeline.

Each segment is transcribed on its own, so its bracketed timestamps start at
zero. Merging shifts every segment by its entry in the time map produced by
the segmenter and concatenates the results in segment order, which is the
sequencing contract the SRT serializer relies on.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from chunkscribe.timestamps.codec import adjust_timestamps_in_text

__all__ = [
    "SegmentTranscript",
    "merge_subtitle_segments",
]


@dataclass(frozen=True)
class SegmentTranscript:
    """Raw engine text for one segment.

    Attributes:
        index: Zero-based segment index (position in the time map).
        text: Engine output with segment-local bracketed timestamps.

    """

    index: int
    text: str


def merge_subtitle_segments(
    results: Sequence[SegmentTranscript],
    time_map: Sequence[float],
) -> str:
    """Merge segment transcripts into one globally-timed raw text.

    Parameters:
        results: Transcripts in any order; they are merged in ascending
            ``index`` order.
        time_map: Start offset in seconds of each segment. Segments without
            an entry are treated as starting at zero.

    Returns:
        str: Adjusted texts joined with newlines. Empty transcripts are
            skipped without a placeholder.
    """
    adjusted: list[str] = []
    for result in sorted(results, key=lambda r: r.index):
        if not result.text:
            continue
        offset = time_map[result.index] if 0 <= result.index < len(time_map) else 0.0
        adjusted.append(adjust_timestamps_in_text(result.text, offset))
    return "\n".join(adjusted)
