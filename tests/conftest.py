# tests/conftest.py — v2
"""Shared test fixtures for all unit tests.

Provides sample documents, a scripted converter, fake analysis collaborators
and temp directories. No external dependencies — all I/O is local or mocked.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from docorch.analysis.base_engine import BaseAnalysisEngine, BaseResultStore
from docorch.conversion.base_converter import BaseConverter, ConversionError
from docorch.core.models import AnalysisProgress, DocumentInfo, ResultItem
from docorch.logging.context import clear_context


# === FAKES ===


class FakeConverter(BaseConverter):
    """Converter returning scripted text, recording every call.

    ``gate`` lets a test hold conversions until it sets the event.
    """

    def __init__(self, pages: dict[int, str] | None = None) -> None:
        self.pages = pages or {}
        self.calls: list[tuple[str, int]] = []
        self.failures: dict[int, str] = {}
        self.gate: asyncio.Event | None = None

    async def convert(self, document_id: str, page_number: int) -> str:
        self.calls.append((document_id, page_number))
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if page_number in self.failures:
            raise ConversionError(document_id, page_number, self.failures[page_number])
        return self.pages.get(page_number, f"# Page {page_number}\n")


class FakeEngine(BaseAnalysisEngine):
    """Engine replaying a scripted sequence of progress statuses."""

    def __init__(self, statuses: list[str] | None = None) -> None:
        self.statuses = list(statuses or ["running", "completed"])
        self.started: list[str] = []
        self.stopped: list[str] = []
        self.progress_calls = 0
        self.start_error: Exception | None = None
        self.stop_error: Exception | None = None
        self.progress_error: Exception | None = None
        self.stop_delay = 0.0

    async def start_job(self, document_id: str) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started.append(document_id)

    async def get_progress(self, document_id: str) -> AnalysisProgress:
        self.progress_calls += 1
        if self.progress_error is not None:
            raise self.progress_error
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return AnalysisProgress.from_engine_status(
            document_id, status, current_page=self.progress_calls, total_pages=3,
            items_found=self.progress_calls,
        )

    async def stop_job(self, document_id: str) -> None:
        self.stopped.append(document_id)
        if self.stop_delay:
            await asyncio.sleep(self.stop_delay)
        if self.stop_error is not None:
            raise self.stop_error


class FakeResultStore(BaseResultStore):
    def __init__(self, items: list[ResultItem] | None = None) -> None:
        self.items = items or []
        self.calls: list[str] = []
        self.error: Exception | None = None

    async def get_results(self, document_id: str) -> list[ResultItem]:
        self.calls.append(document_id)
        if self.error is not None:
            raise self.error
        return list(self.items)


# === FIXTURES: Sample data ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def sample_document() -> DocumentInfo:
    """A 3-page PDF document."""
    return DocumentInfo(
        id="doc_001", name="algebra.pdf", file_type="pdf",
        path="/data/algebra.pdf", total_pages=3,
    )


@pytest.fixture
def other_document() -> DocumentInfo:
    return DocumentInfo(
        id="doc_002", name="geometry.pdf", file_type="pdf",
        path="/data/geometry.pdf", total_pages=5,
    )


@pytest.fixture
def sample_result_item() -> ResultItem:
    return ResultItem(
        id="q_001",
        document_id="doc_001",
        item_type="exercise",
        chapter="1. Linear equations",
        section="1.2 Solving",
        knowledge_points=["linear equation", "substitution"],
        question_text="Solve $2x + 3 = 7$.",
        answer="$x = 2$",
        analysis=None,
        page_number=2,
        has_original_answer=True,
    )


# === FIXTURES: Collaborators ===


@pytest.fixture
def fake_converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def fake_result_store(sample_result_item: ResultItem) -> FakeResultStore:
    return FakeResultStore([sample_result_item])


# === FIXTURES: Temp directories ===


@pytest.fixture
def tmp_storage_dir(tmp_path: Path) -> Path:
    """Temporary storage root for persisted pages and results."""
    root = tmp_path / "files"
    root.mkdir()
    return root
