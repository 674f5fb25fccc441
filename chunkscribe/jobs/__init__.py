"""Resumable job state and its persistence."""

from .models import Job, JobStatus, JobStep, JobSummary, SegmentRecord, now_ms
from .store import JobCache, JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "Job",
    "JobCache",
    "JobStatus",
    "JobStep",
    "JobSummary",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "SegmentRecord",
    "now_ms",
]
