"""Configuration dataclasses for the transcription pipeline.

This module groups related settings so the segmenter, the driver and the
orchestrator each take one small object instead of a long parameter list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from chunkscribe.utils.constant import (
    CACHE_DIR,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MIN_SILENCE_DURATION_SEC,
    DEFAULT_MODEL_NAME,
    DEFAULT_RETRY_BASE_DELAY_SEC,
    DEFAULT_SEARCH_RANGE_SEC,
    DEFAULT_SEGMENT_DURATION_SEC,
    DEFAULT_SILENCE_THRESHOLD_DB,
    JOB_EXPIRY_HOURS,
    JOB_LEASE_TTL_SEC,
    TRANSCRIBE_PROMPT,
)


@dataclass
class SegmentationConfig:
    """Groups silence-aware segmentation settings.

    Attributes:
        segment_duration: Target segment length in seconds.
        search_range: Half-width in seconds of the silence search window
            around each target cut time.
        silence_threshold: Noise floor in dB below which audio counts as silence.
        min_silence_duration: Shortest silence (seconds) worth reporting.

    """

    segment_duration: float = DEFAULT_SEGMENT_DURATION_SEC
    search_range: float = DEFAULT_SEARCH_RANGE_SEC
    silence_threshold: float = DEFAULT_SILENCE_THRESHOLD_DB
    min_silence_duration: float = DEFAULT_MIN_SILENCE_DURATION_SEC

    def __post_init__(self) -> None:
        if self.segment_duration <= 0:
            raise ValueError("segment_duration must be > 0")
        if self.search_range < 0:
            raise ValueError("search_range must be >= 0")
        if self.min_silence_duration < 0:
            raise ValueError("min_silence_duration must be >= 0")


@dataclass
class RetryPolicy:
    """Exponential backoff applied independently to upload and transcribe.

    Attributes:
        max_retries: Retries after the first attempt (total attempts is
            ``max_retries + 1``).
        base_delay: Delay in seconds before the first retry; doubles after
            every failed attempt.

    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_RETRY_BASE_DELAY_SEC

    def delay_for(self, attempt: int) -> float:
        """Return the sleep in seconds after failed attempt ``attempt`` (0-based)."""
        return self.base_delay * (2**attempt)


@dataclass
class PipelineSettings:
    """Top-level settings consumed by the pipeline orchestrator.

    Attributes:
        model: Speech-to-text model identifier.
        prompt: Instruction text sent with every segment.
        segmentation: Silence-aware segmentation settings.
        retry: Retry policy for network calls.
        expiry_hours: Age after which ``processing`` jobs are swept.
        lease_ttl_sec: Lifetime of the single-writer lease on a running job.
        cache_dir: Directory backing the on-disk job cache.

    """

    model: str = DEFAULT_MODEL_NAME
    prompt: str = TRANSCRIBE_PROMPT
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    expiry_hours: float = JOB_EXPIRY_HOURS
    lease_ttl_sec: int = JOB_LEASE_TTL_SEC
    cache_dir: Path = CACHE_DIR
