"""Persistent job and segment state.

A job is one resumable transcription of one source file with one model. It
owns the physical audio segments and their transcripts, and it is written to
the job cache after every unit of progress so that an interrupted run can
pick up at the first unprocessed segment.
"""

from __future__ import annotations

import enum
import time
from typing import Any

from pydantic import BaseModel, Field, model_validator

__all__ = [
    "Job",
    "JobStatus",
    "JobStep",
    "JobSummary",
    "SegmentRecord",
    "now_ms",
]


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class JobStatus(str, enum.Enum):  # noqa: UP042
    """Lifecycle status of a job.

    Attributes:
        PROCESSING: Job created and not yet finished; resumable.
        COMPLETED: All segments transcribed and merged.
        ERROR: A segment failed terminally; resumable with a fresh retry budget.
    """

    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class JobStep(str, enum.Enum):  # noqa: UP042
    """Pipeline stage a job has reached."""

    TRANSCRIBE = "transcribe"
    MERGE = "merge"
    COMPLETED = "completed"


class SegmentRecord(BaseModel):
    """One physical audio chunk awaiting or holding a transcription."""

    index: int = Field(..., ge=0, description="Zero-based position in the job.")
    blob: bytes = Field(..., description="Segment audio bytes.")
    processed: bool = Field(False, description="True once a transcript is stored.")
    transcription: str | None = Field(
        None, description="Raw engine text with segment-local bracketed timestamps."
    )
    uploaded_file_id: str | None = Field(
        None, description="Engine handle of the last upload (diagnostics only)."
    )

    @model_validator(mode="after")
    def _processed_has_transcription(self) -> SegmentRecord:
        if self.processed and self.transcription is None:
            raise ValueError(f"segment {self.index} is processed but has no transcription")
        return self


class Job(BaseModel):
    """One resumable transcription task for a (file, model) pair.

    Examples:
        >>> job = Job(id="talk.mp3_1024_0_gemini", file_name="talk.mp3",
        ...           model="gemini", segments=[], time_map=[])
        >>> job.status
        <JobStatus.PROCESSING: 'processing'>
    """

    id: str = Field(..., min_length=1, description="Cache key derived from file + model.")
    file_name: str = Field(..., description="Name of the source file.")
    model: str = Field(..., description="Speech-to-text model identifier.")
    mime_type: str = Field("audio/mpeg", description="MIME type of every segment blob.")
    timestamp: int = Field(default_factory=now_ms, description="Last write, epoch ms.")
    status: JobStatus = JobStatus.PROCESSING
    error: str | None = None
    current_step: JobStep = JobStep.TRANSCRIBE
    segments: list[SegmentRecord] = Field(default_factory=list)
    time_map: list[float] = Field(default_factory=list)
    locked_until: int | None = Field(
        None, description="Epoch ms until which a running pipeline holds the job."
    )
    srt: str | None = Field(None, description="Final subtitle text once completed.")

    @model_validator(mode="after")
    def _check_time_map(self) -> Job:
        if len(self.segments) != len(self.time_map):
            raise ValueError(
                f"{len(self.segments)} segments but {len(self.time_map)} time map entries"
            )
        if self.time_map and self.time_map[0] != 0:
            raise ValueError("time_map must start at 0")
        if any(b < a for a, b in zip(self.time_map, self.time_map[1:])):
            raise ValueError("time_map must be non-decreasing")
        for position, segment in enumerate(self.segments):
            if segment.index != position:
                raise ValueError(f"segment at position {position} has index {segment.index}")
        return self

    @property
    def total_segments(self) -> int:
        """Number of segments in the job."""
        return len(self.segments)

    @property
    def processed_count(self) -> int:
        """Number of segments that already hold a transcript."""
        return sum(1 for s in self.segments if s.processed)

    @property
    def is_fully_processed(self) -> bool:
        """True when every segment holds a transcript."""
        return all(s.processed for s in self.segments)

    def is_locked(self, at_ms: int | None = None) -> bool:
        """Return True while another run holds the job's lease."""
        reference = now_ms() if at_ms is None else at_ms
        return self.locked_until is not None and self.locked_until > reference

    @property
    def has_resume_point(self) -> bool:
        """True while segments or the merge step are still left to run.

        Errored jobs count: resuming them grants a fresh retry budget.
        """
        return self.status != JobStatus.COMPLETED and self.current_step != JobStep.COMPLETED


def _payload_size(value: Any) -> int:
    # Raw bytes (in-memory store) or an on-disk {"$blob": digest, "size": n} reference
    if isinstance(value, bytes | bytearray):
        return len(value)
    if isinstance(value, dict):
        size = value.get("size", 0)
        return size if isinstance(size, int) else 0
    return 0


class JobSummary(BaseModel):
    """Listing view of a cached job, built without loading segment audio.

    Validated from the same stored document as :class:`Job`; the segment
    list is reduced to counts and a byte total before validation.
    """

    id: str = Field(..., min_length=1)
    file_name: str
    model: str
    timestamp: int
    status: JobStatus
    error: str | None = None
    current_step: JobStep = JobStep.TRANSCRIBE
    locked_until: int | None = None
    total_segments: int = Field(0, ge=0)
    processed_count: int = Field(0, ge=0)
    audio_bytes: int = Field(0, ge=0, description="Total size of the segment audio.")

    @model_validator(mode="before")
    @classmethod
    def _summarize_segments(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "segments" not in data:
            return data
        segments = data["segments"]
        if not isinstance(segments, list):
            raise ValueError("segments must be a list")
        records = [s for s in segments if isinstance(s, dict)]
        summary = {key: value for key, value in data.items() if key != "segments"}
        summary["total_segments"] = len(segments)
        summary["processed_count"] = sum(1 for s in records if s.get("processed"))
        summary["audio_bytes"] = sum(_payload_size(s.get("blob")) for s in records)
        return summary
