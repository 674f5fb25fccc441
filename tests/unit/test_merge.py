"""Unit tests for merging per-segment transcripts onto the full timeline."""

from __future__ import annotations

from chunkscribe.chunking import SegmentTranscript, merge_subtitle_segments


def test_merge_applies_offsets_with_minute_carry() -> None:
    results = [
        SegmentTranscript(index=0, text="[0:00:000-0:01:000] a"),
        SegmentTranscript(index=1, text="[0:00:000-0:02:000] b"),
    ]
    merged = merge_subtitle_segments(results, [0, 60])
    lines = merged.split("\n")
    # First segment has offset zero and is passed through untouched.
    assert lines[0] == "[0:00:000-0:01:000] a"
    assert lines[1] == "[00:01:00:000-00:01:02:000] b"


def test_merge_orders_by_index_not_arrival() -> None:
    results = [
        SegmentTranscript(index=2, text="[00:00:000-00:01:000] third"),
        SegmentTranscript(index=0, text="[00:00:000-00:01:000] first"),
        SegmentTranscript(index=1, text="[00:00:000-00:01:000] second"),
    ]
    merged = merge_subtitle_segments(results, [0, 100, 200])
    assert [line.split("] ")[1] for line in merged.split("\n")] == ["first", "second", "third"]
    assert merged.split("\n")[2].startswith("[00:03:20:000-")


def test_merge_skips_empty_transcripts() -> None:
    results = [
        SegmentTranscript(index=0, text="[00:00:000-00:01:000] a"),
        SegmentTranscript(index=1, text=""),
        SegmentTranscript(index=2, text="[00:00:000-00:01:000] c"),
    ]
    merged = merge_subtitle_segments(results, [0, 300, 600])
    assert merged.count("\n") == 1
    assert merged.endswith("[00:10:00:000-00:10:01:000] c")


def test_merge_missing_time_map_entry_uses_zero_offset() -> None:
    results = [SegmentTranscript(index=3, text="[00:05:000-00:06:000] late")]
    assert merge_subtitle_segments(results, [0]) == "[00:05:000-00:06:000] late"
