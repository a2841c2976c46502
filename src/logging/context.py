# src/logging/context.py — v2
"""Contextual logging support — attach document_id, job_id, page to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per loaded document.
_document_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "document_id", default=None
)
_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)
_page: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "page", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    document_id: str | None = None
    job_id: str | None = None
    page: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        document_id=_document_id.get(),
        job_id=_job_id.get(),
        page=_page.get(),
    )


def set_document_context(document_id: str, job_id: str | None = None) -> None:
    """Set document-level context (called when a document is loaded or analyzed)."""
    _document_id.set(document_id)
    _job_id.set(job_id)


def set_page_context(page: int | None) -> None:
    """Set the page currently being converted or displayed."""
    _page.set(page)


def clear_context() -> None:
    """Reset all context variables."""
    _document_id.set(None)
    _job_id.set(None)
    _page.set(None)
