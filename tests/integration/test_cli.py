"""CLI integration tests driving ``chunkscribe transcribe`` and ``resume``.

FFmpeg and the Gemini SDK are replaced by the fakes from ``conftest``; the
on-disk job cache, the pipeline and the output writers are real.
"""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from typer.testing import CliRunner

from chunkscribe import cli
from chunkscribe.jobs import JobStatus
from chunkscribe.pipeline import orchestrator
from chunkscribe.transcription import cli as transcription_cli

pytestmark = pytest.mark.integration

runner = CliRunner()


@pytest.fixture
def cancel_event() -> threading.Event:
    return threading.Event()


@pytest.fixture(autouse=True)
def _wire_fakes(monkeypatch: pytest.MonkeyPatch, transcoder, engine, cancel_event) -> None:  # noqa: ANN001
    transcoder.silences = [(296.0, 304.0)]
    engine.responses = {
        b"SEG:0-300": "[00:00:000-00:01:500] First part.",
        b"SEG:300-end": "[00:00:500-00:02:000] Second part.",
    }
    monkeypatch.setattr(transcription_cli, "FFmpegTranscoder", lambda: transcoder)
    monkeypatch.setattr(transcription_cli, "GeminiEngine", lambda _key: engine)
    monkeypatch.setattr(cli, "_install_cancellation", lambda: cancel_event)
    monkeypatch.setattr(cli, "configure_logging", lambda **_kwargs: None)


def _transcribe(source: Path, tmp_path: Path, *extra: str):  # noqa: ANN202
    return runner.invoke(
        cli.app,
        [
            "transcribe",
            str(source),
            "--api-key",
            "test-key",
            "--output-dir",
            str(tmp_path / "out"),
            "--cache-dir",
            str(tmp_path / "cache"),
            "--segment-duration",
            "300",
            "--search-range",
            "30",
            "--quiet",
            *extra,
        ],
    )


def test_transcribe_writes_srt(tmp_path: Path, audio_file, engine) -> None:  # noqa: ANN001
    result = _transcribe(audio_file(500), tmp_path)

    assert result.exit_code == 0, result.output
    srt = (tmp_path / "out" / "talk.srt").read_text(encoding="utf-8")
    assert srt == (
        "1\n00:00:00,000 --> 00:00:01,500\nFirst part.\n\n"
        "2\n00:05:00,500 --> 00:05:02,000\nSecond part."
    )
    assert len(engine.uploads) == 2


def test_transcribe_reports_cue_summary(tmp_path: Path, audio_file) -> None:  # noqa: ANN001
    result = runner.invoke(
        cli.app,
        [
            "transcribe",
            str(audio_file(500)),
            "--api-key",
            "test-key",
            "--output-dir",
            str(tmp_path / "out"),
            "--cache-dir",
            str(tmp_path / "cache"),
            "--segment-duration",
            "300",
            "--search-range",
            "30",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "talk.srt (2 cues, 5:02)" in result.output


def test_transcribe_txt_and_numbered_outputs(tmp_path: Path, audio_file, engine) -> None:  # noqa: ANN001
    source = audio_file(500)
    assert _transcribe(source, tmp_path, "--format", "txt").exit_code == 0
    second = _transcribe(source, tmp_path, "--format", "txt")

    assert second.exit_code == 0, second.output
    first_txt = (tmp_path / "out" / "talk.txt").read_text(encoding="utf-8")
    assert first_txt == (
        "[00:00:000-00:01:500] First part.\n[00:05:00:500-00:05:02:000] Second part.\n"
    )
    assert (tmp_path / "out" / "talk-1.txt").exists()
    # The second run is served from the completed job in the cache.
    assert len(engine.uploads) == 2


def test_missing_api_key_exits_with_error(tmp_path: Path, audio_file) -> None:  # noqa: ANN001
    result = runner.invoke(
        cli.app,
        [
            "transcribe",
            str(audio_file(60)),
            "--api-key",
            "",
            "--cache-dir",
            str(tmp_path / "cache"),
            "--quiet",
        ],
    )
    assert result.exit_code == 1
    assert "API key" in result.output


def test_cancelled_run_exits_130_and_resumes(
    tmp_path: Path, audio_file, engine, cancel_event  # noqa: ANN001
) -> None:
    engine.on_transcribe = lambda _handle: cancel_event.set()
    cancelled = _transcribe(audio_file(500), tmp_path)

    assert cancelled.exit_code == 130
    assert "chunkscribe resume" in cancelled.output
    assert not (tmp_path / "out" / "talk.srt").exists()

    jobs = transcription_cli.open_cache(tmp_path / "cache").list_by_status(JobStatus.PROCESSING)
    assert len(jobs) == 1

    engine.on_transcribe = None
    cancel_event.clear()
    resumed = runner.invoke(
        cli.app,
        [
            "resume",
            jobs[0].id,
            "--api-key",
            "test-key",
            "--output-dir",
            str(tmp_path / "out"),
            "--cache-dir",
            str(tmp_path / "cache"),
            "--quiet",
        ],
    )

    assert resumed.exit_code == 0, resumed.output
    assert (tmp_path / "out" / "talk.srt").exists()
    assert len(engine.uploads) == 2


def test_failed_run_prints_resume_hint(tmp_path: Path, audio_file, engine, monkeypatch) -> None:  # noqa: ANN001
    engine.fail_transcribe = -1
    monkeypatch.setattr(orchestrator.time, "sleep", lambda _seconds: None)

    result = _transcribe(audio_file(60), tmp_path)

    assert result.exit_code == 1
    assert "Segment 1/1 failed: boom" in result.output
    assert "chunkscribe resume" in result.output


def test_resume_of_unknown_job_fails(tmp_path: Path) -> None:
    result = runner.invoke(
        cli.app,
        ["resume", "nope", "--api-key", "k", "--cache-dir", str(tmp_path / "cache"), "--quiet"],
    )
    assert result.exit_code == 1
    assert "No cached job" in result.output
