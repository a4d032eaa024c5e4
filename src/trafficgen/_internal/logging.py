"""Logging setup for trafficgen.

All loggers live under the ``trafficgen`` namespace. Worker log calls pass
``extra={"worker_id": ...}`` so both output formats can tag the line with
the worker that produced it.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

_ROOT = "trafficgen"
_TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s%(worker_tag)s: %(message)s"


class _WorkerTagFilter(logging.Filter):
    """Ensure every record carries ``worker_id`` and a printable ``worker_tag``."""

    def filter(self, record: logging.LogRecord) -> bool:
        worker_id = getattr(record, "worker_id", None)
        record.worker_id = worker_id
        record.worker_tag = f"[w{worker_id}]" if worker_id is not None else ""
        return True


class _StderrHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Stream handler bound to whatever ``sys.stderr`` is at emit time."""

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    @property  # type: ignore[override]
    def stream(self):  # noqa: ANN201
        return sys.stderr

    @stream.setter
    def stream(self, _value: object) -> None:
        pass


class _JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, worker_id."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        worker_id = getattr(record, "worker_id", None)
        if worker_id is not None:
            entry["worker_id"] = worker_id
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the ``trafficgen`` root logger.

    Repeated calls only adjust the level; handlers are never duplicated.
    The aiohttp loggers are capped at WARNING so that per-connection noise
    does not drown the generator's own DEBUG output.

    Args:
        level: Logging level, e.g. ``logging.DEBUG``.
        json_format: Emit one-line JSON records instead of text.

    Returns:
        The configured root logger.
    """
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)
    logging.getLogger("aiohttp").setLevel(max(level, logging.WARNING))

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = _StderrHandler()
    handler.setLevel(level)
    handler.addFilter(_WorkerTagFilter())

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``trafficgen.<name>``, e.g. ``get_logger("engine.pool")``."""
    return logging.getLogger(f"{_ROOT}.{name}")
