"""
Logging helpers for xfiles.

Engine records carry the file they concern, and commit records the commit
id. ``FileLoggerAdapter`` attaches that context; ``StructuredJsonFormatter``
renders it as fixed top-level keys, one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO, Any

# Context attributes promoted to top-level keys when a record carries them
CONTEXT_FIELDS = ("path", "commit_id")


class StructuredJsonFormatter(logging.Formatter):
    """
    Render a record as a single-line JSON object.

    Keys: ``timestamp`` (record creation time, ISO 8601 UTC), ``level``,
    ``logger``, ``message``, then whichever of ``CONTEXT_FIELDS`` the record
    carries, then ``exception`` when exception info is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str = "xfiles",
    stream: IO[str] | None = None,
) -> logging.Logger:
    """
    Send a logger's records to ``stream`` (stdout by default) as JSON lines.

    Calling it again replaces the handler installed by the previous call
    and leaves any other handler on the logger alone.
    """
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, StructuredJsonFormatter):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class FileLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter stamping the handle's file path on every record.

    Context given at the call site (``extra={"commit_id": ...}``) is kept
    alongside the adapter's own.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
