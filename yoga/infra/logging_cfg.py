"""
Structured logging setup for the position manager.

- Rich console handler for humans
- Compact JSON file handler for downstream ingestion
- log_event() helper so every component logs one JSON payload per event
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from typing import Any, Optional, Union

from rich.logging import RichHandler


# Log level constants for semantic clarity
CRITICAL_SAFETY = logging.CRITICAL  # Conservation drift, unsettled venue deltas
ERROR = logging.ERROR               # Aborted sessions
WARNING = logging.WARNING           # Allocation audit findings
INFO = logging.INFO                 # Position created / reshaped
DEBUG = logging.DEBUG               # Per-range withdraw/deploy calls


class JsonFormatter(logging.Formatter):
    """Compact JSON formatter for structured log ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        ts = time.time()
        payload = {
            "ts": ts,
            "ts_iso": datetime.fromtimestamp(ts).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"))


def _json_default(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return str(value)


def build_logger(
    name: str = "yoga",
    level: Union[int, str] = logging.INFO,
    file_path: Optional[str] = None,
) -> logging.Logger:
    """
    Build the package logger.

    Args:
        name: Logger name
        level: Minimum log level (int or level name)
        file_path: Path to a JSON log file (None to disable file logging)

    Returns:
        Configured logger instance
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Idempotent handler setup
    if logger.handlers:
        for h in logger.handlers:
            h.setLevel(level)
        return logger

    stream_handler = RichHandler(
        rich_tracebacks=False,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
    )
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(stream_handler)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(JsonFormatter())
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    level: int = logging.INFO,
    **data: Any,
) -> None:
    """
    Log a structured event with proper level.

    Usage:
        log_event(log, "position_reshaped", level=INFO, position_id=1, withdrawn=2)
    """
    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **data}
    logger.log(level, json.dumps(payload, default=_json_default))
