"""End-to-end orchestration: normalize → segment → transcribe → merge.

:class:`TranscriptionPipeline` owns the state machine of one run::

    idle → segmenting → transcribing → merging → completed
                 ╰──────────┴─────────────┴──→ error

A run either starts from a source file (creating the job, or picking up the
cached one with the same id) or resumes a cached job by id. While a run is
transcribing it holds a time-limited lease on the job so that two processes
never drive the same job at once.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from chunkscribe.chunking.merge import SegmentTranscript, merge_subtitle_segments
from chunkscribe.chunking.segmenter import SilenceSegmenter, SupportsSilenceAnalysis
from chunkscribe.config import PipelineSettings
from chunkscribe.errors import (
    InputError,
    JobLockedError,
    PersistenceError,
    ResumeError,
    SegmentTranscriptionError,
    TranscoderError,
)
from chunkscribe.formatting import is_valid_subtitle_format, to_srt
from chunkscribe.jobs.models import Job, JobStatus, JobStep, SegmentRecord, now_ms
from chunkscribe.jobs.store import JobCache
from chunkscribe.transcription.driver import (
    ProgressCallback,
    TranscriptionDriver,
    safe_progress,
)
from chunkscribe.transcription.engine import GeminiEngine, TranscriptionEngine
from chunkscribe.utils.audio_io import NormalizedAudio
from chunkscribe.utils.constant import FALLBACK_MODEL_NAME
from chunkscribe.utils.file_utils import generate_job_id

logger = logging.getLogger(__name__)

EngineFactory = Callable[[str], TranscriptionEngine]


class Transcoder(SupportsSilenceAnalysis, Protocol):
    """Media collaborator used by the pipeline."""

    def normalize(self, path: Path) -> NormalizedAudio:
        """Return engine-ready audio for the file at ``path``."""
        ...


class PipelineState(str, enum.Enum):  # noqa: UP042
    """Externally visible stage of a pipeline run."""

    IDLE = "idle"
    SEGMENTING = "segmenting"
    TRANSCRIBING = "transcribing"
    MERGING = "merging"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class PipelineResult:
    """Outcome of :meth:`TranscriptionPipeline.start` or ``resume``.

    Attributes:
        job_id: Id of the job the run worked on, if one was created.
        state: Final pipeline state.
        srt: Subtitle text when the run completed.
        raw_text: Merged bracket-timestamped text when the run completed.
        partial: True when the run stopped with segments still pending.
        error: Human-readable failure message for ``state == error``.
    """

    job_id: str | None
    state: PipelineState
    srt: str | None = None
    raw_text: str | None = None
    partial: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True when subtitles are available."""
        return self.state == PipelineState.COMPLETED


def effective_model(model: str | None) -> str:
    """Return ``model`` or the fallback model when it is blank."""
    return (model or "").strip() or FALLBACK_MODEL_NAME


def merge_job(job: Job) -> str:
    """Merge the stored transcripts of ``job`` into one absolute-time text."""
    results = [
        SegmentTranscript(index=segment.index, text=segment.transcription or "")
        for segment in job.segments
        if segment.processed
    ]
    return merge_subtitle_segments(results, job.time_map)


class TranscriptionPipeline:
    """Drive a job from source audio to subtitles, resumably.

    Args:
        transcoder: Media collaborator (normalize, probe, silence, extract).
        cache: Job cache; progress is persisted after every segment.
        settings: Pipeline settings; defaults are read from the environment.
        engine_factory: Builds the speech-to-text engine from an API key.
        sleep: Sleep function used between retries (defaults to :func:`time.sleep`).
        cancel_event: Cooperative cancellation flag checked between segments.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        transcoder: Transcoder,
        cache: JobCache,
        settings: PipelineSettings | None = None,
        *,
        engine_factory: EngineFactory = GeminiEngine,
        sleep: Callable[[float], None] | None = None,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.transcoder = transcoder
        self.cache = cache
        self.settings = settings or PipelineSettings()
        self.engine_factory = engine_factory
        self.sleep = sleep or time.sleep
        self.cancel_event = cancel_event
        self.clock = clock
        self.state = PipelineState.IDLE
        self._swept = False

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------
    def start(
        self,
        source: Path | str,
        api_key: str,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Transcribe ``source``, reusing any cached job for the same file and model.

        Raises:
            InputError: If the API key is missing or ``source`` is not a file.
            JobLockedError: If a cached job for the file is held by another run.
            PersistenceError: If job progress cannot be saved.
        """
        emit = safe_progress(on_progress)
        _require_api_key(api_key)
        path = Path(source)
        if not path.is_file():
            raise InputError(f"Input file not found: {path}")

        model = effective_model(self.settings.model)
        self._sweep_once()
        job_id = generate_job_id(path, model)

        cached = self.cache.get(job_id)
        if cached is not None:
            if cached.status == JobStatus.COMPLETED:
                logger.info(f"Job {job_id} already completed; returning stored subtitles")
                self.state = PipelineState.COMPLETED
                return PipelineResult(
                    job_id=job_id,
                    state=self.state,
                    srt=cached.srt or to_srt(merge_job(cached)),
                    raw_text=merge_job(cached),
                )
            if cached.has_resume_point:
                emit(f"Resuming job ({cached.processed_count}/{cached.total_segments} done)")
                return self._continue(cached, api_key, emit)
            if cached.is_locked(self.clock()):
                raise JobLockedError(f"Job {job_id!r} is being processed by another run")
            logger.warning(f"Cached job {job_id} has no resume point; starting over")

        self.state = PipelineState.SEGMENTING
        try:
            emit("Preparing audio")
            audio = self.transcoder.normalize(path)
            segmented = SilenceSegmenter(self.transcoder).segment(
                audio.data, self.settings.segmentation, emit
            )
        except TranscoderError as exc:
            return self._fail(job_id, f"Audio processing failed: {exc}")

        job = Job(
            id=job_id,
            file_name=path.name,
            model=model,
            mime_type=audio.mime_type,
            segments=[
                SegmentRecord(index=i, blob=blob) for i, blob in enumerate(segmented.segments)
            ],
            time_map=segmented.time_map,
        )
        self.cache.set(job_id, job)
        logger.info(f"Created job {job_id} with {job.total_segments} segment(s)")
        return self._run(job, api_key, emit)

    def resume(
        self,
        job_id: str,
        api_key: str,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Continue a cached job from its first unprocessed segment.

        Raises:
            InputError: If the API key is missing.
            InvalidJobIdError: If ``job_id`` is blank.
            ResumeError: If the job does not exist or is already completed.
            JobLockedError: If another run holds the job's lease.
        """
        emit = safe_progress(on_progress)
        _require_api_key(api_key)
        self._sweep_once()
        job = self.cache.get(job_id)
        if job is None:
            raise ResumeError(f"No cached job with id {job_id!r}")
        if not job.has_resume_point:
            raise ResumeError(f"Job {job_id!r} is already completed")
        emit(f"Resuming job ({job.processed_count}/{job.total_segments} done)")
        return self._continue(job, api_key, emit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _sweep_once(self) -> None:
        if self._swept:
            return
        self._swept = True
        try:
            self.cache.sweep_expired(self.settings.expiry_hours, now=self.clock())
        except OSError as exc:
            logger.warning(f"Expired job sweep failed: {exc}")

    def _continue(self, job: Job, api_key: str, emit: ProgressCallback) -> PipelineResult:
        if job.is_locked(self.clock()):
            raise JobLockedError(f"Job {job.id!r} is being processed by another run")
        if job.status == JobStatus.ERROR:
            logger.info(f"Retrying failed job {job.id}: {job.error}")
            job.status = JobStatus.PROCESSING
            job.error = None
        return self._run(job, api_key, emit)

    def _run(self, job: Job, api_key: str, emit: ProgressCallback) -> PipelineResult:
        engine = self.engine_factory(api_key)
        driver = TranscriptionDriver(
            engine,
            self.cache,
            model=job.model,
            prompt=self.settings.prompt,
            retry=self.settings.retry,
            sleep=self.sleep,
            cancel_event=self.cancel_event,
            lease_ttl_ms=self.settings.lease_ttl_sec * 1000,
            clock=self.clock,
        )

        job.locked_until = self.clock() + self.settings.lease_ttl_sec * 1000
        job.current_step = JobStep.TRANSCRIBE
        self.cache.set(job.id, job)
        self.state = PipelineState.TRANSCRIBING
        try:
            driver.run_segments(job, emit)
            if not job.is_fully_processed:
                remaining = job.total_segments - job.processed_count
                logger.info(f"Stopped with {remaining} segment(s) pending; resume with {job.id}")
                return PipelineResult(job_id=job.id, state=self.state, partial=True)
            return self._merge(job, emit)
        except SegmentTranscriptionError as exc:
            return self._fail(job.id, str(exc))
        finally:
            self._release_lease(job)

    def _merge(self, job: Job, emit: ProgressCallback) -> PipelineResult:
        self.state = PipelineState.MERGING
        emit("Merging transcripts")
        job.current_step = JobStep.MERGE
        self.cache.set(job.id, job)

        raw_text = merge_job(job)
        if not is_valid_subtitle_format(raw_text):
            logger.warning(f"Job {job.id}: no timestamped lines in the transcripts")
        srt = to_srt(raw_text)

        job.srt = srt
        job.status = JobStatus.COMPLETED
        job.current_step = JobStep.COMPLETED
        job.error = None
        job.locked_until = None
        self.cache.set(job.id, job)
        self.state = PipelineState.COMPLETED
        emit("Done")
        logger.info(f"Job {job.id} completed ({job.total_segments} segment(s))")
        return PipelineResult(job_id=job.id, state=self.state, srt=srt, raw_text=raw_text)

    def _release_lease(self, job: Job) -> None:
        if job.locked_until is None:
            return
        job.locked_until = None
        try:
            self.cache.set(job.id, job)
        except PersistenceError as exc:
            logger.warning(f"Could not release lease on job {job.id}: {exc}")

    def _fail(self, job_id: str | None, message: str) -> PipelineResult:
        self.state = PipelineState.ERROR
        logger.error(message)
        return PipelineResult(job_id=job_id, state=self.state, error=message)


def _require_api_key(api_key: str | None) -> None:
    if not api_key or not api_key.strip():
        raise InputError("An API key is required (set GEMINI_API_KEY or pass --api-key)")
