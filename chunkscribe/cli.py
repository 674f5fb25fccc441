"""Command-line interface for chunkscribe using Typer.

Features:
- `transcribe` command for turning a long recording into subtitles.
- `resume` command for continuing an interrupted or failed job.
- `jobs`, `delete` and `sweep` commands for managing the job cache.
- Verbose/quiet switches for logging.
"""

import pathlib
import threading
from typing import Annotated

import typer

from chunkscribe import __version__
from chunkscribe.config import SegmentationConfig
from chunkscribe.formatting import FORMATTERS
from chunkscribe.utils.constant import (
    CACHE_DIR,
    DEFAULT_MIN_SILENCE_DURATION_SEC,
    DEFAULT_MODEL_NAME,
    DEFAULT_SEARCH_RANGE_SEC,
    DEFAULT_SEGMENT_DURATION_SEC,
    DEFAULT_SILENCE_THRESHOLD_DB,
    GEMINI_API_KEY,
    JOB_EXPIRY_HOURS,
)
from chunkscribe.utils.file_utils import is_supported_media
from chunkscribe.utils.logging_config import configure_logging


def version_callback(value: bool) -> None:
    """Show the application's version and exit.

    Args:
        value: When True, print the version and exit.

    Raises:
        typer.Exit: Always raised after printing when value is True.

    """
    if value:
        print(f"chunkscribe version: {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="chunkscribe",
    help=(
        "Resumable subtitle generation for long recordings: silence-aware "
        "segmentation, per-segment transcription and timestamp-correct merging."
    ),
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show the application's version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Print help when no subcommand is given.

    Args:
        ctx: Typer context.
        version: Whether to print version and exit.

    Raises:
        typer.Exit: Raised to terminate after displaying help or version.

    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


ApiKeyOption = Annotated[
    str,
    typer.Option(
        "--api-key",
        help="Gemini API key (defaults to the GEMINI_API_KEY environment variable).",
        show_default=False,
    ),
]
OutputDirOption = Annotated[
    pathlib.Path,
    typer.Option(
        "--output-dir",
        "-o",
        help="Directory to save the subtitle file.",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
]
FormatOption = Annotated[
    str,
    typer.Option("--format", "-f", help="Output format: srt or txt.", case_sensitive=False),
]
OverwriteOption = Annotated[
    bool,
    typer.Option(
        "--overwrite",
        help="Overwrite existing output files instead of appending numbered suffixes.",
    ),
]
CacheDirOption = Annotated[
    pathlib.Path,
    typer.Option("--cache-dir", help="Directory holding the resumable job cache."),
]
QuietOption = Annotated[
    bool,
    typer.Option("--quiet", help="Suppress console messages except errors and the result."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", help="Enable verbose output.")]


def _validate_format(output_format: str) -> str:
    fmt = output_format.lower()
    if fmt not in FORMATTERS:
        raise typer.BadParameter(f"format must be one of: {', '.join(FORMATTERS)}")
    return fmt


def _install_cancellation() -> threading.Event:
    from chunkscribe.utils.cancel import (  # pylint: disable=import-outside-toplevel
        get_cancel_event,
        install_signal_handlers,
    )

    event = get_cancel_event()
    install_signal_handlers(event)
    return event


@app.command()
def transcribe(
    source: Annotated[
        pathlib.Path,
        typer.Argument(
            help="Audio or video file to transcribe.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            show_default=False,
        ),
    ],
    model_name: Annotated[
        str,
        typer.Option("--model", help="Speech-to-text model identifier."),
    ] = DEFAULT_MODEL_NAME,
    api_key: ApiKeyOption = GEMINI_API_KEY,
    output_dir: OutputDirOption = pathlib.Path("./output"),
    output_format: FormatOption = "srt",
    overwrite: OverwriteOption = False,
    segment_duration: Annotated[
        float,
        typer.Option("--segment-duration", help="Target segment length in seconds."),
    ] = DEFAULT_SEGMENT_DURATION_SEC,
    search_range: Annotated[
        float,
        typer.Option(
            "--search-range",
            help="Seconds searched on each side of a target cut for silence.",
        ),
    ] = DEFAULT_SEARCH_RANGE_SEC,
    silence_threshold: Annotated[
        float,
        typer.Option("--silence-threshold", help="Silence noise floor in dB."),
    ] = DEFAULT_SILENCE_THRESHOLD_DB,
    min_silence_duration: Annotated[
        float,
        typer.Option("--min-silence-duration", help="Shortest silence (seconds) to consider."),
    ] = DEFAULT_MIN_SILENCE_DURATION_SEC,
    cache_dir: CacheDirOption = CACHE_DIR,
    quiet: QuietOption = False,
    verbose: VerboseOption = False,
) -> pathlib.Path:
    """Transcribe a recording into subtitles, resuming any cached progress.

    Re-running the same file with the same model picks up where the last run
    stopped. A completed job is answered from the cache without network calls.

    Returns:
        Path of the written subtitle file.

    Raises:
        typer.BadParameter: When the file type or segmentation settings are invalid.
    """
    configure_logging(verbose=verbose, quiet=quiet)
    if not is_supported_media(source):
        raise typer.BadParameter(
            f"unsupported file type {source.suffix or '(none)'!r}", param_hint="SOURCE"
        )
    try:
        segmentation = SegmentationConfig(
            segment_duration=segment_duration,
            search_range=search_range,
            silence_threshold=silence_threshold,
            min_silence_duration=min_silence_duration,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    from chunkscribe.transcription.cli import cli_transcribe  # pylint: disable=import-outside-toplevel

    return cli_transcribe(
        source=source,
        api_key=api_key,
        model_name=model_name,
        output_dir=output_dir,
        output_format=_validate_format(output_format),
        overwrite=overwrite,
        segmentation=segmentation,
        cache_dir=cache_dir,
        quiet=quiet,
        verbose=verbose,
        cancel_event=_install_cancellation(),
    )


@app.command()
def resume(
    job_id: Annotated[str, typer.Argument(help="Id of the cached job (see `jobs`).")],
    api_key: ApiKeyOption = GEMINI_API_KEY,
    output_dir: OutputDirOption = pathlib.Path("./output"),
    output_format: FormatOption = "srt",
    overwrite: OverwriteOption = False,
    cache_dir: CacheDirOption = CACHE_DIR,
    quiet: QuietOption = False,
    verbose: VerboseOption = False,
) -> pathlib.Path:
    """Resume a cached job from its first unprocessed segment."""
    configure_logging(verbose=verbose, quiet=quiet)
    from chunkscribe.transcription.cli import cli_resume  # pylint: disable=import-outside-toplevel

    return cli_resume(
        job_id=job_id,
        api_key=api_key,
        output_dir=output_dir,
        output_format=_validate_format(output_format),
        overwrite=overwrite,
        cache_dir=cache_dir,
        quiet=quiet,
        cancel_event=_install_cancellation(),
    )


@app.command()
def jobs(
    status: Annotated[
        str | None,
        typer.Option("--status", help="Only list jobs with this status.", show_default=False),
    ] = None,
    cache_dir: CacheDirOption = CACHE_DIR,
) -> None:
    """List cached jobs."""
    from rich.console import Console  # pylint: disable=import-outside-toplevel

    from chunkscribe.jobs.models import JobStatus  # pylint: disable=import-outside-toplevel
    from chunkscribe.transcription.cli import (  # pylint: disable=import-outside-toplevel
        open_cache,
        render_jobs_table,
    )

    cache = open_cache(cache_dir)
    wanted = None
    if status is not None:
        try:
            wanted = JobStatus(status.lower())
        except ValueError as exc:
            choices = ", ".join(s.value for s in JobStatus)
            raise typer.BadParameter(f"status must be one of: {choices}") from exc
    found = cache.list_summaries(wanted)

    if not found:
        typer.echo("No cached jobs.")
        return
    Console().print(render_jobs_table(found))


@app.command()
def delete(
    job_id: Annotated[str, typer.Argument(help="Id of the cached job to delete.")],
    cache_dir: CacheDirOption = CACHE_DIR,
) -> None:
    """Delete a cached job and its segment audio."""
    from chunkscribe.errors import InvalidJobIdError  # pylint: disable=import-outside-toplevel
    from chunkscribe.transcription.cli import open_cache  # pylint: disable=import-outside-toplevel

    cache = open_cache(cache_dir)
    try:
        if cache.get(job_id) is None:
            typer.secho(f"No cached job with id {job_id!r}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        cache.delete(job_id)
    except InvalidJobIdError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Deleted {job_id}")


@app.command()
def sweep(
    max_age_hours: Annotated[
        float,
        typer.Option("--max-age-hours", help="Delete processing jobs idle for this long."),
    ] = JOB_EXPIRY_HOURS,
    cache_dir: CacheDirOption = CACHE_DIR,
) -> None:
    """Delete abandoned ``processing`` jobs."""
    from chunkscribe.transcription.cli import open_cache  # pylint: disable=import-outside-toplevel

    removed = open_cache(cache_dir).sweep_expired(max_age_hours)
    typer.echo(f"Removed {len(removed)} expired job(s).")
