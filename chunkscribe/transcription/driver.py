"""Sequential, resumable transcription of a job's segments.

Segments are processed one at a time in index order. Every segment that
gets a transcript is persisted immediately, so an interrupted run loses at
most the segment in flight. Upload and transcribe are retried independently
with exponential backoff; a segment that exhausts its retries stops the job
(fail-stop) while keeping every transcript gathered so far.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from chunkscribe.config import RetryPolicy
from chunkscribe.errors import SegmentTranscriptionError
from chunkscribe.jobs.models import Job, JobStatus, now_ms
from chunkscribe.jobs.store import JobCache
from chunkscribe.transcription.engine import TranscriptionEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[str], None]


def retry_with_backoff(
    fn: Callable[[], T],
    *,
    max_retries: int = 4,
    base_delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds or ``max_retries`` retries are spent.

    After failed attempt ``a`` (0-based, ``a < max_retries``) the call sleeps
    ``base_delay * 2**a`` seconds. With the defaults that is 2, 4, 8 and 16
    seconds across five attempts.

    Args:
        fn: Zero-argument callable to invoke.
        max_retries: Retries after the first attempt.
        base_delay: Delay before the first retry, in seconds.
        sleep: Sleep function (injected by tests).

    Returns:
        Whatever ``fn`` returns on its first successful attempt.

    Raises:
        Exception: The error raised by the final attempt.
    """
    for attempt in range(max_retries + 1):
        try:
            return fn()
        except Exception as exc:
            if attempt >= max_retries:
                raise
            delay = base_delay * (2**attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed ({exc}); retrying in {delay:g}s"
            )
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover


def safe_progress(on_progress: ProgressCallback | None) -> ProgressCallback:
    """Wrap a progress sink so that its failures never affect the pipeline."""

    def emit(message: str) -> None:
        logger.debug(message)
        if on_progress is None:
            return
        try:
            on_progress(message)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Progress callback failed: {exc}")

    return emit


class TranscriptionDriver:
    """Runs upload + transcribe for every unprocessed segment of a job.

    Args:
        engine: Speech-to-text engine.
        cache: Job cache used to persist progress after every segment.
        model: Model identifier passed to the engine.
        prompt: Instruction text sent with every segment.
        retry: Backoff policy applied to upload and transcribe separately.
        sleep: Sleep function used between retries.
        cancel_event: When set, the driver stops before the next segment.
        lease_ttl_ms: When given, every progress write extends the job's lease
            to ``clock() + lease_ttl_ms`` so long runs keep holding it.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        engine: TranscriptionEngine,
        cache: JobCache,
        *,
        model: str,
        prompt: str,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: threading.Event | None = None,
        lease_ttl_ms: int | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.engine = engine
        self.cache = cache
        self.model = model
        self.prompt = prompt
        self.retry = retry or RetryPolicy()
        self.sleep = sleep
        self.cancel_event = cancel_event
        self.lease_ttl_ms = lease_ttl_ms
        self.clock = clock

    def _with_retry(self, fn: Callable[[], T]) -> T:
        return retry_with_backoff(
            fn,
            max_retries=self.retry.max_retries,
            base_delay=self.retry.base_delay,
            sleep=self.sleep,
        )

    def _persist(self, job: Job) -> None:
        if self.lease_ttl_ms is not None:
            job.locked_until = self.clock() + self.lease_ttl_ms
        self.cache.set(job.id, job)

    def run_segments(self, job: Job, on_progress: ProgressCallback | None = None) -> bool:
        """Transcribe the job's pending segments in index order.

        Args:
            job: Job to advance; mutated in place and persisted per segment.
            on_progress: Optional sink for human-readable progress messages.

        Returns:
            True when the loop reached the end, False when cancelled.

        Raises:
            SegmentTranscriptionError: If a segment exhausts its retries. The
                job is persisted with status ``error`` first.
            PersistenceError: If saving progress fails twice.
        """
        emit = safe_progress(on_progress)
        total = job.total_segments

        for segment in job.segments:
            if segment.processed:
                continue
            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.info(
                    f"Cancelled before segment {segment.index + 1}/{total}; "
                    f"job {job.id} stays resumable"
                )
                return False

            position = f"{segment.index + 1}/{total}"
            try:
                emit(f"Uploading segment {position}")
                handle = self._with_retry(
                    lambda: self.engine.upload(segment.blob, job.mime_type)
                )
                segment.uploaded_file_id = handle.id

                emit(f"Transcribing segment {position}")
                text = self._with_retry(
                    lambda: self.engine.transcribe(handle, self.model, self.prompt)
                )
            except Exception as exc:
                message = f"Segment {position} failed: {exc}"
                logger.error(message)
                job.status = JobStatus.ERROR
                job.error = message
                self.cache.set(job.id, job)
                raise SegmentTranscriptionError(
                    message, index=segment.index, total=total
                ) from exc

            segment.transcription = text.strip()
            segment.processed = True
            self._persist(job)
            logger.info(f"Segment {position} transcribed ({len(segment.transcription)} chars)")

        return True
