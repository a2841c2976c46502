# src/analysis/base_engine.py — v1
"""Abstract analysis collaborators: the job engine and the result store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from docorch.core.models import AnalysisProgress, ResultItem


class BaseAnalysisEngine(ABC):
    """Runs page-by-page extraction jobs, one per document."""

    @abstractmethod
    async def start_job(self, document_id: str) -> None:
        """Start a job in the background and return once it is accepted."""

    @abstractmethod
    async def get_progress(self, document_id: str) -> AnalysisProgress:
        """Return the current progress snapshot of the document's job."""

    @abstractmethod
    async def stop_job(self, document_id: str) -> None:
        """Request cancellation. Work already in flight may still finish."""


class BaseResultStore(ABC):
    """Read access to the items produced by a completed job."""

    @abstractmethod
    async def get_results(self, document_id: str) -> list[ResultItem]:
        """Return all result items of a document (empty when none)."""
