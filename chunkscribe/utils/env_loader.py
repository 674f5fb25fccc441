"""Utility for loading project-level environment variables.

Uses `python-dotenv` to load a `.env` file sitting at repository root *early*
in the application lifecycle so that the constants module picks up overrides
such as `GEMINI_API_KEY` or `SEGMENT_DURATION_SEC`.

Usage (call as soon as possible in your CLI / entry-point):

    from chunkscribe.utils.env_loader import load_project_env
    load_project_env()

Re-invocation is a no-op, so callers can safely call multiple times.
"""

from __future__ import annotations

import functools
import pathlib
from collections.abc import Callable
from typing import Any, Final

from dotenv import load_dotenv

_REPO_ROOT: Final[pathlib.Path] = pathlib.Path(__file__).resolve().parents[2]
_ENV_FILE: Final[pathlib.Path] = _REPO_ROOT / ".env"
LOAD_DOTENV: Final[Callable[..., Any]] = load_dotenv


@functools.lru_cache(maxsize=1)
def load_project_env(force: bool = False) -> None:
    """Load the project-level `.env` file into the process environment.

    Decorated with `lru_cache` so it runs only once per process unless
    ``force`` is given.

    Args:
        force: If True, bypasses the cache and forces a reload of the
            environment file. Defaults to False.

    """
    if force:
        load_project_env.cache_clear()  # type: ignore[attr-defined]

    if not _ENV_FILE.exists():
        return

    # `override=False` keeps variables already exported by the shell.
    LOAD_DOTENV(dotenv_path=_ENV_FILE, override=False)


__all__ = [
    "load_project_env",
]
