"""Shared test fixtures for the chunkscribe test suite.

The pipeline talks to two external collaborators, a media transcoder and a
speech-to-text engine. The fakes below stand in for both so that tests run
without FFmpeg or network access:

* ``FakeTranscoder`` treats audio bytes of the form ``b"AUDIO:<seconds>"`` as
  a recording of that length and reports configured silences.
* ``FakeEngine`` records uploads and returns scripted transcripts keyed by
  the uploaded segment bytes.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from chunkscribe.config import PipelineSettings, RetryPolicy, SegmentationConfig
from chunkscribe.jobs.store import JobCache, MemoryStore
from chunkscribe.pipeline import TranscriptionPipeline
from chunkscribe.timestamps.models import SilenceInterval
from chunkscribe.transcription.engine import UploadedFile
from chunkscribe.utils.audio_io import NormalizedAudio

DEFAULT_TRANSCRIPT = "[00:00:000-00:01:000] hello"


class FakeTranscoder:
    """In-memory transcoder driven by ``b"AUDIO:<seconds>"`` payloads."""

    def __init__(self, silences: list[tuple[float, float]] | None = None) -> None:
        self.silences = silences or []
        self.windows: list[tuple[float, float]] = []
        self.extracted: list[tuple[float, float | None]] = []
        self.fail_detect = False
        self.closed = False

    def __enter__(self) -> FakeTranscoder:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    def normalize(self, path: Path) -> NormalizedAudio:
        return NormalizedAudio(data=Path(path).read_bytes(), name=Path(path).name, mime_type="audio/mpeg")

    def probe_duration(self, data: bytes) -> float | None:
        prefix, _, value = data.partition(b":")
        if prefix != b"AUDIO":
            return None
        return float(value)

    def detect_silence(
        self,
        data: bytes,
        start: float,
        end: float,
        *,
        threshold_db: float,
        min_duration: float,
    ) -> list[SilenceInterval]:
        self.windows.append((start, end))
        if self.fail_detect:
            from chunkscribe.errors import TranscoderError

            raise TranscoderError("silencedetect crashed")
        return [
            SilenceInterval(start=s - start, end=e - start, duration=e - s)
            for s, e in self.silences
            if s < end and e > start
        ]

    def extract(self, data: bytes, start: float, end: float | None) -> bytes:
        self.extracted.append((start, end))
        end_label = "end" if end is None else f"{end:g}"
        return f"SEG:{start:g}-{end_label}".encode()


class FakeEngine:
    """Scripted speech-to-text engine.

    Attributes:
        responses: Transcript returned per uploaded segment payload.
        fail_upload: Number of upload calls that raise before succeeding
            (``-1`` means always fail).
        fail_transcribe: Same as ``fail_upload`` for transcription.
    """

    def __init__(self, responses: dict[bytes, str] | None = None) -> None:
        self.responses = responses or {}
        self.uploads: list[bytes] = []
        self.transcribed: list[str] = []
        self.fail_upload = 0
        self.fail_transcribe = 0
        self.on_transcribe: Callable[[UploadedFile], None] | None = None
        self._payloads: dict[str, bytes] = {}

    def upload(self, data: bytes, mime_type: str) -> UploadedFile:
        if self.fail_upload:
            self.fail_upload -= 1 if self.fail_upload > 0 else 0
            raise ConnectionError("upload failed")
        self.uploads.append(data)
        file_id = f"files/{len(self.uploads)}"
        self._payloads[file_id] = data
        return UploadedFile(id=file_id, uri=f"https://example.invalid/{file_id}", mime_type=mime_type)

    def transcribe(self, handle: UploadedFile, model: str, prompt: str) -> str:
        if self.fail_transcribe:
            self.fail_transcribe -= 1 if self.fail_transcribe > 0 else 0
            raise TimeoutError("boom")
        self.transcribed.append(handle.id)
        if self.on_transcribe is not None:
            self.on_transcribe(handle)
        return self.responses.get(self._payloads[handle.id], DEFAULT_TRANSCRIPT)


class Clock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def cache(clock: Clock) -> JobCache:
    return JobCache(MemoryStore(), clock=clock)


@pytest.fixture
def sleeps() -> list[float]:
    """Collects the delays requested by retry loops instead of sleeping."""
    return []


@pytest.fixture
def settings(tmp_path: Path) -> PipelineSettings:
    return PipelineSettings(
        model="test-model",
        prompt="transcribe",
        segmentation=SegmentationConfig(
            segment_duration=300, search_range=30, silence_threshold=-30, min_silence_duration=0.5
        ),
        retry=RetryPolicy(max_retries=4, base_delay=2.0),
        expiry_hours=24,
        lease_ttl_sec=900,
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def make_pipeline(
    transcoder: FakeTranscoder,
    engine: FakeEngine,
    cache: JobCache,
    settings: PipelineSettings,
    sleeps: list[float],
    clock: Clock,
) -> Callable[..., TranscriptionPipeline]:
    """Build a pipeline wired to the fakes; keyword overrides are passed through."""

    def _make(**overrides: object) -> TranscriptionPipeline:
        kwargs: dict[str, object] = {
            "engine_factory": lambda _key: engine,
            "sleep": sleeps.append,
            "clock": clock,
        }
        kwargs.update(overrides)
        return TranscriptionPipeline(transcoder, cache, settings, **kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def audio_file(tmp_path: Path) -> Callable[[float, str], Path]:
    """Write a fake recording of the given length and return its path."""

    def _write(seconds: float, name: str = "talk.mp3") -> Path:
        path = tmp_path / name
        path.write_bytes(f"AUDIO:{seconds:g}".encode())
        return path

    return _write
