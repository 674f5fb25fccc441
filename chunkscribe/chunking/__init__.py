"""Segmentation and merging utilities for long-form transcription.

This package provides tools for splitting long audio into silence-aligned
segments and merging the per-segment transcripts back onto one timeline.
"""

from .merge import SegmentTranscript, merge_subtitle_segments
from .segmenter import (
    SegmentationResult,
    SilenceSegmenter,
    plan_cut_points,
    select_cut_point,
)

__all__ = [
    "SegmentTranscript",
    "SegmentationResult",
    "SilenceSegmenter",
    "merge_subtitle_segments",
    "plan_cut_points",
    "select_cut_point",
]
