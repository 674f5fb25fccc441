"""Implementation behind the ``chunkscribe`` CLI commands.

The Typer layer in :mod:`chunkscribe.cli` only parses options; this module
builds the collaborators, renders Rich output, and writes subtitle files.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator, Sequence
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from chunkscribe.config import PipelineSettings, SegmentationConfig
from chunkscribe.errors import ChunkscribeError
from chunkscribe.formatting import get_formatter_spec, get_subtitle_stats
from chunkscribe.jobs.models import JobStatus, JobSummary
from chunkscribe.jobs.store import JobCache, JsonFileStore
from chunkscribe.pipeline import PipelineResult, PipelineState, TranscriptionPipeline
from chunkscribe.transcription.driver import ProgressCallback
from chunkscribe.transcription.engine import GeminiEngine
from chunkscribe.utils.audio_io import FFmpegTranscoder
from chunkscribe.utils.file_utils import format_bytes, format_duration, get_unique_filename

logger = logging.getLogger(__name__)

# Exit code for a run stopped by SIGINT/SIGTERM (job stays resumable)
EXIT_CANCELLED = 130


def open_cache(cache_dir: Path) -> JobCache:
    """Return the on-disk job cache rooted at ``cache_dir``."""
    return JobCache(JsonFileStore(cache_dir))


def _display_settings(
    *,
    source: str,
    settings: PipelineSettings,
    output_dir: Path,
    output_format: str,
) -> None:
    """Render the effective run settings as a Rich table."""
    console = Console()
    seg = settings.segmentation
    table = Table(title="Run Settings", show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Setting", style="green")
    table.add_column("Value", style="yellow")

    table.add_row("Input", "Source", source)
    table.add_row("Model", "Model Name", settings.model)
    table.add_row("Segmentation", "Segment Duration", f"{seg.segment_duration:g}s")
    table.add_row("Segmentation", "Search Range", f"±{seg.search_range:g}s")
    table.add_row("Segmentation", "Silence Threshold", f"{seg.silence_threshold:g} dB")
    table.add_row("Segmentation", "Min Silence", f"{seg.min_silence_duration:g}s")
    table.add_row("Output", "Directory", str(output_dir))
    table.add_row("Output", "Format", output_format)
    table.add_row("Cache", "Directory", str(settings.cache_dir))
    console.print(table)


@contextlib.contextmanager
def _progress_status(quiet: bool) -> Iterator[ProgressCallback | None]:
    """Yield a progress sink driving a Rich spinner (``None`` when quiet)."""
    if quiet:
        yield None
        return
    console = Console()
    with console.status("Starting…") as status:

        def on_progress(message: str) -> None:
            status.update(message)

        yield on_progress


def _write_output(
    result: PipelineResult,
    *,
    file_name: str,
    output_dir: Path,
    output_format: str,
    overwrite: bool,
) -> Path:
    spec = get_formatter_spec(output_format)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = get_unique_filename(
        output_dir / f"{Path(file_name).stem}{spec.file_extension}", overwrite=overwrite
    )
    target.write_text(spec.format_func(result.raw_text or ""), encoding="utf-8")
    return target


def _finish(
    result: PipelineResult,
    *,
    file_name: str,
    output_dir: Path,
    output_format: str,
    overwrite: bool,
    quiet: bool,
    cancel_event: threading.Event | None,
) -> Path:
    """Write the output of a completed run or exit with the right code."""
    if result.state == PipelineState.ERROR:
        typer.secho(f"Error: {result.error}", fg=typer.colors.RED, err=True)
        if result.job_id:
            typer.secho(
                f"Resume later with: chunkscribe resume {result.job_id}",
                fg=typer.colors.YELLOW,
                err=True,
            )
        raise typer.Exit(code=1)

    if result.partial:
        typer.secho(
            f"Stopped early; resume with: chunkscribe resume {result.job_id}",
            fg=typer.colors.YELLOW,
            err=True,
        )
        cancelled = cancel_event is not None and cancel_event.is_set()
        raise typer.Exit(code=EXIT_CANCELLED if cancelled else 1)

    path = _write_output(
        result,
        file_name=file_name,
        output_dir=output_dir,
        output_format=output_format,
        overwrite=overwrite,
    )
    if not quiet:
        stats = get_subtitle_stats(result.srt or "")
        typer.secho(
            f"Wrote {path} ({stats.segment_count} cues, {format_duration(stats.duration)})",
            fg=typer.colors.GREEN,
        )
    return path


def cli_transcribe(
    *,
    source: Path,
    api_key: str,
    model_name: str,
    output_dir: Path,
    output_format: str,
    overwrite: bool,
    segmentation: SegmentationConfig,
    cache_dir: Path,
    quiet: bool = False,
    verbose: bool = False,
    cancel_event: threading.Event | None = None,
) -> Path:
    """Transcribe one file and write its subtitles.

    Returns:
        Path of the written output file.

    Raises:
        typer.Exit: With code 1 on failure, or 130 when cancelled.
    """
    settings = PipelineSettings(
        model=model_name, segmentation=segmentation, cache_dir=cache_dir
    )
    if verbose and not quiet:
        _display_settings(
            source=str(source),
            settings=settings,
            output_dir=output_dir,
            output_format=output_format,
        )

    with FFmpegTranscoder() as transcoder:
        pipeline = TranscriptionPipeline(
            transcoder,
            open_cache(cache_dir),
            settings,
            engine_factory=GeminiEngine,
            cancel_event=cancel_event,
        )
        try:
            with _progress_status(quiet) as on_progress:
                result = pipeline.start(source, api_key, on_progress)
        except ChunkscribeError as exc:
            typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc

    return _finish(
        result,
        file_name=source.name,
        output_dir=output_dir,
        output_format=output_format,
        overwrite=overwrite,
        quiet=quiet,
        cancel_event=cancel_event,
    )


def cli_resume(
    *,
    job_id: str,
    api_key: str,
    output_dir: Path,
    output_format: str,
    overwrite: bool,
    cache_dir: Path,
    quiet: bool = False,
    cancel_event: threading.Event | None = None,
) -> Path:
    """Resume a cached job and write its subtitles once complete.

    Raises:
        typer.Exit: With code 1 on failure, or 130 when cancelled.
    """
    cache = open_cache(cache_dir)
    settings = PipelineSettings(cache_dir=cache_dir)

    with FFmpegTranscoder() as transcoder:
        pipeline = TranscriptionPipeline(
            transcoder, cache, settings, engine_factory=GeminiEngine, cancel_event=cancel_event
        )
        try:
            job = cache.get(job_id)
            with _progress_status(quiet) as on_progress:
                result = pipeline.resume(job_id, api_key, on_progress)
        except ChunkscribeError as exc:
            typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc

    return _finish(
        result,
        file_name=job.file_name if job is not None else job_id,
        output_dir=output_dir,
        output_format=output_format,
        overwrite=overwrite,
        quiet=quiet,
        cancel_event=cancel_event,
    )


def render_jobs_table(jobs: Sequence[JobSummary]) -> Table:
    """Build a Rich table summarising cached jobs."""
    table = Table(title="Cached Jobs", show_header=True, header_style="bold magenta")
    table.add_column("Job ID", style="cyan", overflow="fold")
    table.add_column("File", style="green")
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Segments", justify="right")
    table.add_column("Audio", justify="right")
    table.add_column("Updated")
    table.add_column("Error", style="red", overflow="fold")

    colors = {
        JobStatus.PROCESSING: "yellow",
        JobStatus.COMPLETED: "green",
        JobStatus.ERROR: "red",
    }
    for job in jobs:
        updated = datetime.fromtimestamp(job.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(
            job.id,
            job.file_name,
            job.model,
            f"[{colors[job.status]}]{job.status.value}[/]",
            f"{job.processed_count}/{job.total_segments}",
            format_bytes(job.audio_bytes),
            updated,
            job.error or "",
        )
    return table
