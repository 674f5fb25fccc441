"""Pipeline orchestration for resumable segmented transcription."""

from .orchestrator import (
    PipelineResult,
    PipelineState,
    Transcoder,
    TranscriptionPipeline,
    effective_model,
    merge_job,
)

__all__ = [
    "PipelineResult",
    "PipelineState",
    "Transcoder",
    "TranscriptionPipeline",
    "effective_model",
    "merge_job",
]
