"""JSON-lines logging for search runs and API requests.

Every record carries an ``event`` key (``ils_run_started``,
``backtrack_iteration``, ``route_request`` ...). Records go to stderr and,
when a writable directory is found, to ``<out_dir>/logs/ils.log.jsonl``.
Per-iteration events use :func:`log_debug` so long experiment runs stay quiet
unless ``LOG_LEVEL=DEBUG``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "bikeroute"
LOG_FILE_NAME = "ils.log.jsonl"


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _writable(log_dir: Path) -> bool:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        marker = log_dir / ".writetest"
        marker.touch(exist_ok=True)
        marker.unlink(missing_ok=True)
    except OSError:
        return False
    return True


def _resolve_log_dir(configured_out_dir: str) -> Path | None:
    for log_dir in (
        Path(configured_out_dir) / "logs",
        Path.cwd() / "out" / "logs",
        Path(gettempdir()) / LOGGER_NAME / "logs",
    ):
        if _writable(log_dir):
            return log_dir
    return None


def _handler(handler: logging.Handler, name: str, formatter: logging.Formatter) -> logging.Handler:
    handler.set_name(name)
    handler.setFormatter(formatter)
    return handler


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)

    # One set of handlers per process, however many searches the experiment runner creates.
    if getattr(logger, "_configured", False):
        return logger

    logger.setLevel(_parse_level(settings.log_level))
    logger.propagate = False

    formatter = jsonlogger.JsonFormatter()
    logger.addHandler(_handler(logging.StreamHandler(), "bikeroute-stderr", formatter))

    log_dir = _resolve_log_dir(settings.out_dir)
    if log_dir is not None:
        try:
            file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        except OSError:
            file_handler = None
        if file_handler is not None:
            logger.addHandler(_handler(file_handler, "bikeroute-jsonl", formatter))

    logger._configured = True  # type: ignore[attr-defined]
    return logger


LOGGER: logging.Logger | None = None


def _logger() -> logging.Logger:
    global LOGGER
    if LOGGER is None:
        LOGGER = get_logger()
    return LOGGER


def log_event(event: str, **fields: Any) -> None:
    _logger().info(event, extra={"event": event, **fields})


def log_debug(event: str, **fields: Any) -> None:
    logger = _logger()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(event, extra={"event": event, **fields})
