"""Structured logging configuration for autocert.

Provides JSON and text formatters, a context filter that injects the
run id and (when serving HTTP) Flask request attributes into every log
record, and a one-call ``configure_logging`` function driven by config
settings.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

from autocert.logging.context import current_run_id

if TYPE_CHECKING:
    from autocert.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Context attributes handled explicitly:
        "run_id",
        "client_ip",
        "method",
        "path",
    }
)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "thread": record.threadName,
        }

        for attr in ("run_id", "client_ip", "method", "path"):
            value = getattr(record, attr, None)
            if value is not None:
                data[attr] = value

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development / console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(run_id)s] %(threadName)s %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class RunContextFilter(logging.Filter):
    """Inject the current run id and Flask request context into records.

    ``run_id`` falls back to ``"-"`` outside a run; ``client_ip``,
    ``method`` and ``path`` are only set inside a request context.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if getattr(record, "run_id", None) is None:
            record.run_id = current_run_id() or "-"  # type: ignore[attr-defined]
        if not hasattr(record, "client_ip"):
            record.client_ip = None  # type: ignore[attr-defined]
        if not hasattr(record, "method"):
            record.method = None  # type: ignore[attr-defined]
        if not hasattr(record, "path"):
            record.path = None  # type: ignore[attr-defined]

        from flask import has_request_context, request  # noqa: PLC0415

        if has_request_context():
            record.client_ip = request.remote_addr  # type: ignore[attr-defined]
            record.method = request.method  # type: ignore[attr-defined]
            record.path = request.path  # type: ignore[attr-defined]

        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``autocert`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output.
    Sets up the audit file handler if ``settings.audit.enabled``.

    Returns the root ``autocert`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("autocert")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    ctx_filter = RunContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    # Audit events always reach the console through propagation; the
    # file handler is an additional, always-JSON copy.
    audit = logging.getLogger("autocert.audit")
    audit.setLevel(logging.INFO)
    for handler in list(audit.handlers):
        audit.removeHandler(handler)
        handler.close()
    if settings.audit.enabled and settings.audit.file:
        try:
            fh = RotatingFileHandler(
                settings.audit.file,
                maxBytes=settings.audit.max_file_size_bytes,
                backupCount=settings.audit.backup_count,
            )
        except OSError as exc:
            root.warning(
                "Could not open audit log file %s: %s",
                settings.audit.file,
                exc,
            )
        else:
            fh.setFormatter(StructuredFormatter())
            fh.addFilter(ctx_filter)
            audit.addHandler(fh)

    # Quieten noisy third-party loggers
    for lib in (
        "werkzeug",
        "gunicorn",
        "gunicorn.access",
        "gunicorn.error",
        "acme.client",
        "urllib3",
        "google.auth",
    ):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
