from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

DEBUG_ENV = "TWIST_DEBUG"


def _stderr_logger(*_args: Any) -> structlog.PrintLogger:
    # sys.stderr is resolved per logger, not at configure time.
    return structlog.PrintLogger(sys.stderr)


def setup_logging(*, debug: bool = False) -> None:
    if os.environ.get(DEBUG_ENV) in {"1", "true"}:
        debug = True
    level = logging.DEBUG if debug else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None, **initial: Any) -> Any:
    if name is not None:
        initial.setdefault("logger_name", name)
    return structlog.get_logger(**initial)
