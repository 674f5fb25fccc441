"""Unit tests for environment loader behavior.

These tests exercise reading from a ``.env`` file via python-dotenv and
ensure idempotent behavior when files are missing.
"""

import os
from pathlib import Path

import pytest

from chunkscribe.utils import env_loader


def test_load_project_env_dotenv(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """python-dotenv should be invoked with the project env file.

    Args:
        monkeypatch (pytest.MonkeyPatch): Fixture for patching modules.
        tmp_path (pathlib.Path): Temporary directory for the test.
    """
    env_file = tmp_path / ".env"
    env_file.write_text("FOO=bar\n")
    calls: list[dict[str, object]] = []

    def fake_load_dotenv(**kwargs: object) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(env_loader, "_ENV_FILE", env_file)
    monkeypatch.setattr(env_loader, "LOAD_DOTENV", fake_load_dotenv)
    env_loader.load_project_env.cache_clear()
    env_loader.load_project_env()
    assert calls == [{"dotenv_path": env_file, "override": False}]


def test_load_project_env_real_file(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """Values from the file are exported without clobbering the shell."""
    env_file = tmp_path / ".env"
    env_file.write_text("CHUNKSCRIBE_TEST_HELLO=world\nCHUNKSCRIBE_TEST_KEEP=file\n")
    monkeypatch.setattr(env_loader, "_ENV_FILE", env_file)
    monkeypatch.delenv("CHUNKSCRIBE_TEST_HELLO", raising=False)
    monkeypatch.setenv("CHUNKSCRIBE_TEST_KEEP", "shell")
    env_loader.load_project_env.cache_clear()
    env_loader.load_project_env()
    assert os.getenv("CHUNKSCRIBE_TEST_HELLO") == "world"
    assert os.getenv("CHUNKSCRIBE_TEST_KEEP") == "shell"
    monkeypatch.delenv("CHUNKSCRIBE_TEST_HELLO", raising=False)


def test_load_project_env_no_file(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """Missing env files should not crash the loader."""
    missing = tmp_path / "missing.env"
    called: list[object] = []
    monkeypatch.setattr(env_loader, "_ENV_FILE", missing)
    monkeypatch.setattr(env_loader, "LOAD_DOTENV", lambda **kw: called.append(kw))
    env_loader.load_project_env.cache_clear()
    env_loader.load_project_env()
    assert called == []
