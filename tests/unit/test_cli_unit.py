"""Unit tests for the top-level CLI entry points.

These tests validate help output, the version callback and the job-cache
management commands without touching FFmpeg or the network.
"""

from pathlib import Path

import pytest
import typer
from rich.console import Console
from typer.testing import CliRunner

from chunkscribe import cli
from chunkscribe.jobs import Job, JobCache, JobStatus, JobStep, JsonFileStore, SegmentRecord, now_ms
from chunkscribe.transcription.cli import open_cache, render_jobs_table

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CLI runs from rebinding the root logger to the runner's stdout."""
    monkeypatch.setattr(cli, "configure_logging", lambda **_kwargs: None)


def _store_job(
    cache_dir: Path, job_id: str, status: JobStatus = JobStatus.PROCESSING, written_at: int | None = None
) -> Job:
    job = Job(
        id=job_id,
        file_name=f"{job_id}.mp3",
        model="m",
        status=status,
        current_step=JobStep.COMPLETED if status == JobStatus.COMPLETED else JobStep.TRANSCRIBE,
        segments=[SegmentRecord(index=0, blob=b"seg")],
        time_map=[0.0],
    )
    clock = now_ms if written_at is None else (lambda: written_at)
    JobCache(JsonFileStore(cache_dir), clock=clock).set(job.id, job)
    return job


def test_version_callback(capsys: pytest.CaptureFixture[str]) -> None:
    """Ensure ``--version`` callback exits the process cleanly."""
    with pytest.raises(typer.Exit):
        cli.version_callback(True)
    assert "chunkscribe version:" in capsys.readouterr().out


def test_main_help() -> None:
    """Invoking the app without args should print usage and exit 0."""
    result = runner.invoke(cli.app, [])
    assert result.exit_code == 0
    assert "Usage" in result.stdout


def test_validate_format() -> None:
    assert cli._validate_format("SRT") == "srt"
    with pytest.raises(typer.BadParameter):
        cli._validate_format("vtt")


def test_transcribe_rejects_unknown_format(tmp_path: Path) -> None:
    source = tmp_path / "talk.mp3"
    source.write_bytes(b"AUDIO:10")
    result = runner.invoke(
        cli.app,
        ["transcribe", str(source), "--format", "docx", "--cache-dir", str(tmp_path / "c")],
    )
    assert result.exit_code != 0


def test_transcribe_rejects_invalid_segment_duration(tmp_path: Path) -> None:
    source = tmp_path / "talk.mp3"
    source.write_bytes(b"AUDIO:10")
    result = runner.invoke(cli.app, ["transcribe", str(source), "--segment-duration", "0"])
    assert result.exit_code != 0


def test_transcribe_rejects_unsupported_file_type(tmp_path: Path) -> None:
    source = tmp_path / "notes.txt"
    source.write_bytes(b"AUDIO:10")
    result = runner.invoke(cli.app, ["transcribe", str(source), "--cache-dir", str(tmp_path / "c")])
    assert result.exit_code == 2
    assert "unsupported file type" in result.output
    assert not (tmp_path / "c").exists()


def test_jobs_empty_cache(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["jobs", "--cache-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "No cached jobs." in result.stdout


def test_jobs_lists_and_filters(tmp_path: Path) -> None:
    _store_job(tmp_path, "alpha")
    _store_job(tmp_path, "beta", JobStatus.COMPLETED)

    listed = runner.invoke(cli.app, ["jobs", "--cache-dir", str(tmp_path)])
    assert listed.exit_code == 0
    assert "alpha" in listed.stdout
    assert "beta" in listed.stdout

    filtered = runner.invoke(cli.app, ["jobs", "--status", "completed", "--cache-dir", str(tmp_path)])
    assert filtered.exit_code == 0
    assert "beta" in filtered.stdout
    assert "alpha" not in filtered.stdout

    bad = runner.invoke(cli.app, ["jobs", "--status", "paused", "--cache-dir", str(tmp_path)])
    assert bad.exit_code != 0


def test_delete_command(tmp_path: Path) -> None:
    _store_job(tmp_path, "alpha")

    result = runner.invoke(cli.app, ["delete", "alpha", "--cache-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "Deleted alpha" in result.stdout
    assert open_cache(tmp_path).get("alpha") is None

    missing = runner.invoke(cli.app, ["delete", "alpha", "--cache-dir", str(tmp_path)])
    assert missing.exit_code == 1


def test_sweep_command(tmp_path: Path) -> None:
    _store_job(tmp_path, "alpha", written_at=1_000)
    kept = runner.invoke(cli.app, ["sweep", "--max-age-hours", "1e9", "--cache-dir", str(tmp_path)])
    assert "Removed 0 expired job(s)." in kept.stdout

    result = runner.invoke(cli.app, ["sweep", "--cache-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "Removed 1 expired job(s)." in result.stdout
    assert open_cache(tmp_path).get("alpha") is None


def test_jobs_table_shows_progress_and_audio_size(tmp_path: Path) -> None:
    _store_job(tmp_path, "alpha")

    console = Console(width=200, record=True)
    console.print(render_jobs_table(open_cache(tmp_path).list_summaries()))
    text = console.export_text()

    assert "alpha.mp3" in text
    assert "0/1" in text
    assert "3 B" in text
