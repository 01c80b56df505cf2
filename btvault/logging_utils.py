"""Loguru setup for btvault: a stdout sink, a bridge into stdlib logging, and run context."""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from os import PathLike
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from btvault import APP_VERSION
from btvault.settings import get_logging_settings

_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | "
    "env={extra[environment]} | ver={extra[service_version]} | "
    "bt={extra[backtest]} | {message}"
)

_SINK_OPTIONS = {"enqueue": False, "backtrace": False, "diagnose": False}


def _bridge_to_stdlib(message) -> None:
    """Forward a loguru record to the root stdlib logger, extras as attributes."""
    record = message.record
    exc = record["exception"]
    log_record = logging.LogRecord(
        name=record["name"],
        level=record["level"].no,
        pathname=record["file"].path,
        lineno=record["line"],
        msg=record["message"],
        args=(),
        exc_info=(exc.type, exc.value, exc.traceback) if exc else None,
        func=record["function"],
    )
    log_record.__dict__.update(record["extra"])
    logging.getLogger().handle(log_record)


def setup_logging(*, force: bool = False, level: Optional[str] = None) -> None:
    """Configure the loguru sinks once (or again with ``force``)."""
    if not force and getattr(setup_logging, "_configured", False):
        return

    settings = get_logging_settings()
    log_level = (level or settings.level).upper()

    logger.remove()
    logger.configure(
        extra={
            "environment": settings.environment,
            "service_version": APP_VERSION,
            "backtest": "-",
        }
    )
    logger.add(sys.stdout, level=log_level, format=_LOG_FORMAT, **_SINK_OPTIONS)
    logger.add(_bridge_to_stdlib, level=log_level, **_SINK_OPTIONS)

    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))
    setup_logging._configured = True  # type: ignore[attr-defined]


def setup_test_logging(
    target: Optional[Union[str, PathLike]] = None,
    *,
    level: str = "INFO",
    filename: str = "pytest.log",
) -> Optional[Path]:
    """
    Logging for test sessions. ``target`` is a log file or a directory that
    receives ``filename``; without it only stdout is used. Returns the log path.
    """
    setup_logging(force=True, level=level)
    if target is None:
        return None

    path = Path(target)
    if path.is_dir() or not path.suffix:
        path = path / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.add(str(path), level=level.upper(), format=_LOG_FORMAT, **_SINK_OPTIONS)
    return path


@contextmanager
def logging_context(**values: str):
    """Bind fields such as ``backtest`` to every record logged inside the block."""
    with logger.contextualize(**{key: value or "-" for key, value in values.items()}):
        yield


__all__ = ["setup_logging", "setup_test_logging", "logging_context"]
