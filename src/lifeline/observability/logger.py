"""Structured JSON logger for lifeline.

Every log record is emitted as a single-line JSON object so that worker
output can be consumed by a log aggregation pipeline without additional
parsing.

Typical structured output::

    {"ts": "2025-07-01T12:00:00.123456+00:00", "level": "INFO",
     "logger": "lifeline.snapshot", "message": "Snapshot stored",
     "job": "snapshot", "user_id": "u_1", "snapshot_id": "snap_...",
     "items": 412}

Usage::

    from lifeline.observability import get_logger, job_logger

    log = get_logger("lifeline.restore")
    log.info("page created", extra={"extra_fields": {"page_id": "abc"}})

    # Attach job identifiers to every record of one run
    jlog = job_logger(log, job="restore", restore_id="r_1", user_id="u_1")
    jlog.info("Restore started")
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import datetime, timezone
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts``, ``level``, ``logger`` and ``message``.
    Structured fields passed via ``extra={"extra_fields": {...}}`` are
    merged into the top-level object, and a formatted traceback is added
    under ``exception`` when the record carries one.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] | None = getattr(record, "extra_fields", None)
        if extra_fields is not None:
            log_entry.update(extra_fields)

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=str)


class JobLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps job identifiers onto every record.

    Fields given at construction are merged *under* any ``extra_fields``
    supplied on the individual call, so call-site values win.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        fields = dict(self.extra or {})
        fields.update(extra.get("extra_fields") or {})
        extra["extra_fields"] = fields
        kwargs["extra"] = extra
        return msg, kwargs


# One handler per logger name so ``get_logger`` stays idempotent.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "lifeline",
    *,
    level: int | str = logging.DEBUG,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name.  Defaults to ``"lifeline"``.
    level:
        Minimum log level, as an ``int`` or a case-insensitive string.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        A logger with a :class:`StructuredFormatter` handler attached.
        Repeated calls with the same *name* do not add duplicate handlers.
    """
    logger = logging.getLogger(name)

    if name not in _configured_loggers:
        resolved_level = (
            logging.getLevelName(level.upper())
            if isinstance(level, str)
            else level
        )
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        _configured_loggers.add(name)

    return logger


def job_logger(logger: logging.Logger, **fields: Any) -> JobLoggerAdapter:
    """Wrap *logger* so every record carries *fields* (job id, user id...)."""
    return JobLoggerAdapter(logger, fields)
