"""Unit tests for centralized logging configuration."""

from __future__ import annotations

import logging

import pytest


def _capture_basic_config(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, object]]:
    calls: list[dict[str, object]] = []

    def fake_basic_config(**kwargs: object) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(logging, "basicConfig", fake_basic_config)
    return calls


def test_configure_logging_default(monkeypatch: pytest.MonkeyPatch) -> None:
    """Default logging config should use INFO and quiet the HTTP stack."""
    import chunkscribe.utils.logging_config as logging_config

    calls = _capture_basic_config(monkeypatch)
    logging_config.configure_logging()

    assert calls[0]["level"] == logging.INFO
    assert calls[0]["force"] is True
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("pydub.converter").level == logging.WARNING


def test_configure_logging_verbose(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verbose mode should set DEBUG and keep third-party loggers at INFO."""
    import chunkscribe.utils.logging_config as logging_config

    calls = _capture_basic_config(monkeypatch)
    logging_config.configure_logging(verbose=True)

    assert calls[0]["level"] == logging.DEBUG
    assert logging.getLogger("google").level == logging.INFO


def test_configure_logging_quiet_and_explicit_level(monkeypatch: pytest.MonkeyPatch) -> None:
    """Quiet mode uses CRITICAL; an explicit level wins over the flags."""
    import chunkscribe.utils.logging_config as logging_config

    calls = _capture_basic_config(monkeypatch)
    monkeypatch.setattr(logging_config.warnings, "filterwarnings", lambda *a, **k: None)
    logging_config.configure_logging(quiet=True)
    logging_config.configure_logging(level="ERROR", verbose=True)

    assert calls[0]["level"] == logging.CRITICAL
    assert calls[1]["level"] == logging.ERROR
    assert logging.getLogger("urllib3").level == logging.ERROR
