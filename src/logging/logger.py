# src/logging/logger.py — v2
"""Logger factory with JSON and text formatters.

Every record carries the document / analysis job / page context of the task
that emitted it (see ``docorch.logging.context``). Console output goes to
stderr; stdout belongs to the CLI.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TextIO

from docorch.logging.context import LogContext, get_context

if TYPE_CHECKING:
    from docorch.config.settings import Settings

ROOT_LOGGER = "docorch"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; context and ``extra={"data": ...}`` nested."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            entry["error_type"] = type(record.exc_info[1]).__name__
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Single-line human-readable format for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        line = " ".join([
            _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
            *_context_tags(get_context()),
            f"— {record.getMessage()}",
        ])
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the docorch root. Configuration is applied by setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    stream: TextIO | None = None,
) -> None:
    """Configure the docorch root logger, replacing previous handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format ("json" or "text").
        log_file: Path to log file (None = console only).
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
        stream: Console stream, stderr by default.
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        from docorch.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(
            log_file, rotation=rotation, retention=retention
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def configure_from_settings(settings: Settings, level: str | None = None) -> None:
    """Apply the LOG_* settings; ``level`` overrides LOG_LEVEL (e.g. for --verbose)."""
    setup_logging(
        level=level or settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


def _context_tags(ctx: LogContext) -> list[str]:
    tags: list[str] = []
    if ctx.document_id:
        tags.append(f"[{ctx.document_id}]")
    if ctx.job_id:
        tags.append(f"<{ctx.job_id}>")
    if ctx.page is not None:
        tags.append(f"(p.{ctx.page})")
    return tags
