"""JSON log lines, correlated per monitoring run.

A run's pipeline, its adapters and the observer all log on different threads.
While :func:`run_context` is active, every record carries that run's id, so a
single run can be followed across them. ``run_id``, ``route`` and ``step`` sit
at the top level of each JSON line; any other ``extra=`` fields are nested
under ``"extra"``.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import IO, Any

# Attributes every LogRecord has, plus the ones Formatter adds.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}

CORRELATION_FIELDS = ("run_id", "route", "step")

_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

_current_run_id: ContextVar[str | None] = ContextVar("freight_run_id", default=None)


@contextmanager
def run_context(run_id: str | None) -> Iterator[None]:
    """Tag every record logged inside the block with `run_id`."""

    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


def current_run_id() -> str | None:
    return _current_run_id.get()


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        fields = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if fields.get("run_id") is None:
            fields.pop("run_id", None)
            bound = _current_run_id.get()
            if bound is not None:
                fields["run_id"] = bound

        for key in CORRELATION_FIELDS:
            if key in fields:
                payload[key] = fields.pop(key)
        if fields:
            payload["extra"] = fields

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str, *, stream: IO[str] | None = None) -> None:
    """Send JSON lines for the whole process to `stream` (stdout by default)."""

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))
