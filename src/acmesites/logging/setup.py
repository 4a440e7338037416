"""Structured logging configuration for acmesites.

Provides JSON and text formatters, a workflow-context filter that
injects the active workflow id and site into every log record, and a
one-call ``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acmesites.config.settings import LoggingSettings

_workflow_id: contextvars.ContextVar[str] = contextvars.ContextVar("workflow_id", default="-")
_site: contextvars.ContextVar[str] = contextvars.ContextVar("site", default="-")

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
        # Context attributes (handled explicitly):
        "workflow_id",
        "site",
    }
)


# ---------------------------------------------------------------------------
# Workflow context
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def workflow_context(workflow_id: str, site: str) -> Iterator[None]:
    """Tag every record logged inside the block with *workflow_id* and *site*."""
    wf_token = _workflow_id.set(workflow_id)
    site_token = _site.set(site)
    try:
        yield
    finally:
        _site.reset(site_token)
        _workflow_id.reset(wf_token)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        workflow_id = getattr(record, "workflow_id", "-")
        if workflow_id != "-":
            data["workflow_id"] = workflow_id

        site = getattr(record, "site", "-")
        if site != "-":
            data["site"] = site

        # Caller-supplied extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(workflow_id)s] %(site)s %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class WorkflowContextFilter(logging.Filter):
    """Inject the active workflow context into every log record.

    Records logged outside :func:`workflow_context` get ``"-"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "workflow_id"):
            record.workflow_id = _workflow_id.get()  # type: ignore[attr-defined]
        if not hasattr(record, "site"):
            record.site = _site.get()  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings, *, debug: bool = False) -> logging.Logger:
    """Configure the ``acmesites`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output.
    *debug* forces the ``DEBUG`` level.

    Returns the root ``acmesites`` logger.
    """
    level = logging.DEBUG if debug else getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("acmesites")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(WorkflowContextFilter())
    root.addHandler(console)

    return root
