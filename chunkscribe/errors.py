"""Exception hierarchy shared across the transcription pipeline."""

from __future__ import annotations


class ChunkscribeError(Exception):
    """Base class for all errors raised by chunkscribe."""


class InputError(ChunkscribeError, ValueError):
    """Raised for invalid caller input (missing credentials, file or id).

    Input errors are rejected immediately: no job state is mutated and no
    retry is attempted.
    """


class InvalidJobIdError(InputError):
    """Raised when a job id is empty or otherwise unusable as a cache key."""


class ResumeError(InputError):
    """Raised when a resume request cannot be honored."""


class JobLockedError(ResumeError):
    """Raised when another run currently holds the job's lease."""


class PersistenceError(ChunkscribeError):
    """Raised when job progress cannot be written to the cache."""


class TranscoderError(ChunkscribeError):
    """Raised when an external media tool fails."""


class SegmentTranscriptionError(ChunkscribeError):
    """Raised when a segment exhausts its upload/transcribe retries.

    Attributes:
        index: Zero-based index of the failing segment.
        total: Number of segments in the job.
    """

    def __init__(self, message: str, *, index: int, total: int) -> None:
        super().__init__(message)
        self.index = index
        self.total = total
