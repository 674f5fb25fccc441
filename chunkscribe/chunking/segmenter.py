"""Silence-aware segmenter for long-audio transcription.

Long recordings are cut near multiples of the target segment length, with
each cut nudged onto the longest silence found in a search window around the
target so that no word is split across two engine requests. The produced
time map records where every segment starts in the original timeline; the
merge step uses it to invert the split.

The cut-point planning is kept free of any media tooling so that it can be
tested with synthetic silence intervals.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from chunkscribe.config import SegmentationConfig
from chunkscribe.errors import TranscoderError
from chunkscribe.timestamps.models import SilenceInterval

logger = logging.getLogger(__name__)

__all__ = [
    "SegmentationResult",
    "SilenceSegmenter",
    "SupportsSilenceAnalysis",
    "plan_cut_points",
    "select_cut_point",
]

ProgressSink = Callable[[str], None]
SilenceDetector = Callable[[float, float], Sequence[SilenceInterval]]


class SupportsSilenceAnalysis(Protocol):
    """Subset of the transcoder the segmenter relies on."""

    def probe_duration(self, data: bytes) -> float | None:
        """Return the duration of ``data`` in seconds, or ``None`` when unknown."""

    def detect_silence(
        self,
        data: bytes,
        start: float,
        end: float,
        *,
        threshold_db: float,
        min_duration: float,
    ) -> list[SilenceInterval]:
        """Return silences inside ``[start, end]``, in window-local time."""

    def extract(self, data: bytes, start: float, end: float | None) -> bytes:
        """Return ``[start, end)`` of ``data`` without re-encoding."""


@dataclass
class SegmentationResult:
    """Physical segments and where each one starts in the original audio.

    Attributes:
        segments: Audio bytes for each segment, in playback order.
        time_map: Start offset in seconds of each segment; ``time_map[0] == 0``.
        needs_split: ``False`` when the input was short enough to be sent
            as a single unmodified segment.

    """

    segments: list[bytes]
    time_map: list[float]
    needs_split: bool


def select_cut_point(
    intervals: Sequence[SilenceInterval],
    window_start: float,
    window_end: float,
    target: float,
) -> float:
    """Choose a cut point inside a search window.

    Parameters:
        intervals: Silences reported in window-local time.
        window_start: Absolute start of the search window in seconds.
        window_end: Absolute end of the search window in seconds.
        target: Absolute target cut time, used when no silence qualifies.

    Returns:
        float: Midpoint of the longest silence whose midpoint lies inside
            the window (earliest wins on ties), otherwise ``target``.
    """
    best: SilenceInterval | None = None
    for interval in intervals:
        absolute = interval.shifted(window_start)
        if not window_start <= absolute.midpoint <= window_end:
            continue
        if best is None or absolute.duration > best.duration:
            best = absolute
    return best.midpoint if best is not None else target


def plan_cut_points(
    total_duration: float,
    config: SegmentationConfig,
    detect: SilenceDetector,
    on_progress: ProgressSink | None = None,
) -> list[float]:
    """Compute ascending cut points for audio of ``total_duration`` seconds.

    Targets are walked at ``segment_duration``, ``2 * segment_duration`` and
    so on while the target lies before the end of the audio. A window whose
    silence analysis fails falls back to the window midpoint. Cuts that would
    not advance past the previous one (possible when windows overlap) are
    dropped.

    Parameters:
        total_duration: Length of the audio in seconds.
        config: Segmentation settings.
        detect: Callable ``(window_start, window_end)`` returning silences in
            window-local time. May raise :class:`TranscoderError` or
            :class:`OSError`.
        on_progress: Optional sink for human-readable progress text.

    Returns:
        list[float]: Strictly increasing cut points in ``(0, total_duration)``.
    """
    cuts: list[float] = []
    n_targets = math.ceil(total_duration / config.segment_duration) - 1
    step = 1
    target = config.segment_duration
    while target < total_duration:
        window_start = max(0.0, target - config.search_range)
        window_end = min(total_duration, target + config.search_range)
        if on_progress is not None:
            on_progress(f"Looking for silence near {target:.0f}s ({step}/{n_targets})")
        try:
            intervals = detect(window_start, window_end)
        except (TranscoderError, OSError) as exc:
            cut = (window_start + window_end) / 2.0
            logger.warning(
                f"Silence analysis failed for window {window_start:.2f}s-{window_end:.2f}s "
                f"({exc}); cutting at window midpoint {cut:.2f}s"
            )
        else:
            cut = select_cut_point(intervals, window_start, window_end, target)
            logger.debug(
                f"Target {target:.2f}s: {len(intervals)} silence(s) in window, cut at {cut:.2f}s"
            )

        if cut <= 0 or cut >= total_duration or (cuts and cut <= cuts[-1]):
            logger.debug(f"Dropping non-advancing cut point {cut:.2f}s")
        else:
            cuts.append(cut)

        step += 1
        target = step * config.segment_duration
    return cuts


class SilenceSegmenter:
    """Split normalized audio into bounded segments at silences.

    Attributes:
        transcoder: Media collaborator providing duration probing, silence
            analysis and exact-copy extraction.

    Examples:
        >>> segmenter = SilenceSegmenter(FFmpegTranscoder())
        >>> result = segmenter.segment(audio_bytes, SegmentationConfig())
        >>> result.time_map
        [0.0, 301.42, 598.87]
    """

    def __init__(self, transcoder: SupportsSilenceAnalysis) -> None:
        self.transcoder = transcoder

    def segment(
        self,
        audio: bytes,
        config: SegmentationConfig,
        on_progress: ProgressSink | None = None,
    ) -> SegmentationResult:
        """Segment ``audio`` according to ``config``.

        Audio no longer than ``segment_duration`` (or of unknown duration) is
        returned untouched as a single segment with no further media work.

        Args:
            audio: Normalized audio bytes.
            config: Segmentation settings.
            on_progress: Optional sink for human-readable progress text.

        Returns:
            SegmentationResult: Segments and their time map.

        Raises:
            TranscoderError: If a segment cannot be extracted.
        """
        total = self.transcoder.probe_duration(audio)
        if total is None:
            logger.warning("Audio duration unknown; sending it as a single segment")
            return SegmentationResult(segments=[audio], time_map=[0.0], needs_split=False)
        if total <= config.segment_duration:
            logger.debug(f"Audio is {total:.2f}s, no split needed")
            return SegmentationResult(segments=[audio], time_map=[0.0], needs_split=False)

        def _detect(window_start: float, window_end: float) -> list[SilenceInterval]:
            return self.transcoder.detect_silence(
                audio,
                window_start,
                window_end,
                threshold_db=config.silence_threshold,
                min_duration=config.min_silence_duration,
            )

        cuts = plan_cut_points(total, config, _detect, on_progress)
        if not cuts:
            return SegmentationResult(segments=[audio], time_map=[0.0], needs_split=False)

        time_map = [0.0, *cuts]
        ends: list[float | None] = [*cuts, None]
        segments: list[bytes] = []
        for i, (start, end) in enumerate(zip(time_map, ends), start=1):
            if on_progress is not None:
                on_progress(f"Cutting segment {i}/{len(time_map)}")
            segments.append(self.transcoder.extract(audio, start, end))

        logger.info(
            f"Split {total:.2f}s of audio into {len(segments)} segments at "
            + ", ".join(f"{c:.2f}s" for c in cuts)
        )
        return SegmentationResult(segments=segments, time_map=time_map, needs_split=True)
