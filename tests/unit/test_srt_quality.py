"""Unit tests for SRT statistics."""

from __future__ import annotations

import pytest

from chunkscribe.formatting import get_subtitle_stats, to_srt


def test_stats_for_rendered_srt() -> None:
    srt = to_srt(
        "[00:00:000-00:02:500] one\n[00:02:500-00:05:000] two\n[01:00:000-01:04:120] three"
    )
    stats = get_subtitle_stats(srt)
    assert stats.segment_count == 3
    assert stats.line_count == 9
    assert stats.duration == pytest.approx(64.12)


def test_stats_for_empty_text() -> None:
    stats = get_subtitle_stats("")
    assert (stats.segment_count, stats.line_count, stats.duration) == (0, 0, 0.0)


def test_stats_without_timing_lines() -> None:
    stats = get_subtitle_stats("just words\nmore words")
    assert stats.segment_count == 0
    assert stats.line_count == 2
