# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

# === MODES AND STATUSES ===

RenderMode = Literal["source", "derived", "raw"]

# Modes whose content comes from the page conversion cache.
CACHED_MODES: frozenset[str] = frozenset({"derived", "raw"})

JobStatus = Literal["not_started", "running", "completed", "failed", "stopped"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "stopped"})

# Engine wire status -> JobStatus.
ENGINE_STATUS_MAP: dict[str, str] = {
    "idle": "not_started",
    "analyzing": "running",
    "running": "running",
    "completed": "completed",
    "error": "failed",
    "failed": "failed",
    "stopped": "stopped",
}

PageViewState = Literal["empty", "source", "loading", "ready", "error"]


def requires_cache(mode: str) -> bool:
    """Whether a render mode needs converted page text."""
    return mode in CACHED_MODES


def is_terminal(status: str) -> bool:
    """Whether a job status ends the polling lifecycle."""
    return status in TERMINAL_STATUSES


# === DOCUMENTS AND PAGES ===


class DocumentInfo(BaseModel):
    """Document metadata borrowed from the file storage layer."""

    id: str
    name: str = ""
    file_type: str = "pdf"
    path: str = ""
    total_pages: int = Field(default=1, ge=1)


class PageKey(BaseModel):
    """Identity of one page of one document (1-indexed)."""

    model_config = {"frozen": True}

    document_id: str
    page_number: int = Field(ge=1)

    def __str__(self) -> str:
        return f"{self.document_id}#{self.page_number}"


class PageView(BaseModel):
    """What the caller should currently display for the loaded document."""

    document_id: str | None = None
    page_number: int = 1
    mode: RenderMode = "source"
    state: PageViewState = "empty"
    content: str | None = None
    error: str | None = None


# === ANALYSIS ===


class AnalysisProgress(BaseModel):
    """Progress snapshot reported by an analysis engine."""

    document_id: str
    status: JobStatus = "not_started"
    current_page: int = 0
    total_pages: int = 0
    current_step: str = ""
    items_found: int = 0
    message: str = ""

    @classmethod
    def from_engine_status(cls, document_id: str, status: str, **fields: object) -> AnalysisProgress:
        """Build a snapshot from an engine's wire status string.

        Unknown statuses are reported as ``failed`` so polling still ends.
        """
        mapped = ENGINE_STATUS_MAP.get(status.lower(), "failed")
        return cls(document_id=document_id, status=mapped, **fields)  # type: ignore[arg-type]


class ResultItem(BaseModel):
    """One structured item extracted by the analysis job.

    Also accepts the ``file_id`` / ``question_type`` keys of older result files.
    """

    id: str
    document_id: str = Field(validation_alias=AliasChoices("document_id", "file_id"))
    item_type: Literal["example", "exercise"] = Field(
        default="exercise", validation_alias=AliasChoices("item_type", "question_type"),
    )
    chapter: str = ""
    section: str = ""
    knowledge_points: list[str] = Field(default_factory=list)
    question_text: str
    answer: str = ""
    analysis: str | None = None
    page_number: int = Field(ge=1)
    has_original_answer: bool = False


class AnalysisJob(BaseModel):
    """Monitor-side state of one analysis job."""

    document_id: str
    status: JobStatus = "not_started"
    current_page: int = 0
    total_pages: int = 0
    items_found: int = 0
    status_message: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None
    poll_failures: int = 0
    results: list[ResultItem] | None = None
    results_error: str | None = None

    def apply_progress(self, progress: AnalysisProgress) -> None:
        """Copy progress counters reported by the engine."""
        self.status = progress.status
        self.current_page = progress.current_page
        self.total_pages = progress.total_pages
        self.items_found = progress.items_found
        self.status_message = progress.message
