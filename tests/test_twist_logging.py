from __future__ import annotations

import io

import structlog

from twist_cli.logging import get_logger, setup_logging


def test_logger_writes_to_current_stderr(monkeypatch) -> None:
    first = io.StringIO()
    monkeypatch.setattr("sys.stderr", first)
    setup_logging(debug=True)
    logger = get_logger("twist_cli.example")

    logger.debug("example.first", value=1)
    assert "example.first" in first.getvalue()
    assert "twist_cli.example" in first.getvalue()

    # A later stderr replaces a closed one.
    second = io.StringIO()
    first.close()
    monkeypatch.setattr("sys.stderr", second)
    logger.warning("example.second")
    assert "example.second" in second.getvalue()


def test_setup_logging_filters_below_warning(monkeypatch) -> None:
    stream = io.StringIO()
    monkeypatch.setattr("sys.stderr", stream)
    setup_logging()
    logger = get_logger("twist_cli.example")

    logger.debug("example.hidden")
    logger.warning("example.shown")
    assert "example.hidden" not in stream.getvalue()
    assert "example.shown" in stream.getvalue()


def test_debug_env_enables_debug(monkeypatch) -> None:
    stream = io.StringIO()
    monkeypatch.setattr("sys.stderr", stream)
    monkeypatch.setenv("TWIST_DEBUG", "1")
    setup_logging()

    get_logger(__name__).debug("example.debug")
    assert "example.debug" in stream.getvalue()
    assert structlog.is_configured()
