# src/logging/logger.py - v2
"""Logger factory with JSON and text formatters.

All semkb loggers live under the ``semkb`` namespace. ``setup_logging``
configures that namespace only; the host application's root logger is left
untouched.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from semkb.logging.context import get_context

# Provider SDKs log every HTTP request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "google", "ollama")


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, context, data, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            payload["context"] = context

        # logger.info(..., extra={"data": {...}})
        data = getattr(record, "data", None)
        if data:
            payload["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Single-line human-readable format for development."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        if ctx.request_id:
            parts.append(f"[{ctx.request_id}]")
        if ctx.operation:
            parts.append(f"({ctx.operation})")
        if ctx.provider:
            parts.append(f"<{ctx.provider}>")
        parts.append(f"- {record.getMessage()}")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "json": JsonFormatter,
    "text": TextFormatter,
}


def get_logger(name: str) -> logging.Logger:
    """Logger under the semkb namespace. Configuration is applied by setup_logging()."""
    return logging.getLogger(f"semkb.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """Configure the semkb logger namespace.

    Safe to call repeatedly: previous handlers are closed and replaced.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: "json" or "text".
        log_file: Optional rotating log file in addition to stdout.
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.

    Raises:
        ValueError: If ``log_format`` is unknown.
    """
    formatter_cls = _FORMATTERS.get(log_format)
    if formatter_cls is None:
        raise ValueError(
            f"Unknown log format: {log_format!r}. Use one of {sorted(_FORMATTERS)}"
        )
    formatter = formatter_cls()

    semkb_logger = logging.getLogger("semkb")
    semkb_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(semkb_logger.handlers):
        semkb_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    semkb_logger.addHandler(console_handler)

    if log_file:
        from semkb.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(
            log_file, rotation=rotation, retention=retention
        )
        file_handler.setFormatter(formatter)
        semkb_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
