# src/analysis/local_engine.py — v1
"""In-process analysis engine running the page loop as an asyncio task.

Pages are converted, normalized and handed to a page analyzer (typically an
LLM-backed extractor) that returns result items. Large documents are walked
in batches. A stop request is honoured before the next page starts; the page
being analyzed at that moment still finishes. Results are written to the
result store once the last page is done.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from docorch.analysis.base_engine import BaseAnalysisEngine
from docorch.analysis.json_result_store import JsonResultStore
from docorch.conversion.base_converter import BaseConverter
from docorch.conversion.text_normalizer import normalize
from docorch.core.models import AnalysisProgress, DocumentInfo, ResultItem

logger = logging.getLogger(__name__)

# (document_id, page_number, normalized page text) -> extracted items
PageAnalyzer = Callable[[str, int, str], Awaitable[list[ResultItem]]]


@dataclass
class _RunState:
    progress: AnalysisProgress
    should_stop: bool = False
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class LocalAnalysisEngine(BaseAnalysisEngine):
    """Runs one extraction job per document inside the current event loop."""

    def __init__(
        self,
        documents: Mapping[str, DocumentInfo],
        converter: BaseConverter,
        page_analyzer: PageAnalyzer,
        result_store: JsonResultStore,
        *,
        batch_size: int = 20,
        large_document_pages: int = 400,
    ) -> None:
        self._documents = documents
        self._converter = converter
        self._page_analyzer = page_analyzer
        self._result_store = result_store
        self._batch_size = batch_size
        self._large_document_pages = large_document_pages
        self._states: dict[str, _RunState] = {}

    async def start_job(self, document_id: str) -> None:
        document = self._documents.get(document_id)
        if document is None:
            raise KeyError(f"Unknown document: {document_id!r}")

        previous = self._states.get(document_id)
        if previous is not None and previous.task is not None and not previous.task.done():
            previous.should_stop = True

        state = _RunState(
            progress=AnalysisProgress(
                document_id=document_id,
                status="running",
                total_pages=document.total_pages,
                current_step="init",
                message="Preparing analysis",
            )
        )
        self._states[document_id] = state
        state.task = asyncio.create_task(self._run(document, state))

    async def get_progress(self, document_id: str) -> AnalysisProgress:
        state = self._states.get(document_id)
        if state is None:
            return AnalysisProgress(document_id=document_id, message="Analysis not started")
        return state.progress.model_copy()

    async def stop_job(self, document_id: str) -> None:
        state = self._states.get(document_id)
        if state is None:
            return
        state.should_stop = True
        if state.progress.status == "running":
            self._update(state, status="stopped", message="Analysis stopped")

    async def wait(self, document_id: str) -> None:
        """Wait for a document's job task to end (used by the CLI and tests)."""
        state = self._states.get(document_id)
        if state is not None and state.task is not None:
            await asyncio.wait({state.task})

    async def _run(self, document: DocumentInfo, state: _RunState) -> None:
        total = document.total_pages
        batch_size = self._batch_size if total > self._large_document_pages else total
        items: list[ResultItem] = []

        try:
            for batch_start in range(1, total + 1, batch_size):
                batch_end = min(batch_start + batch_size - 1, total)
                self._update(
                    state, current_page=batch_start,
                    message=f"Analyzing pages {batch_start} - {batch_end}",
                )
                for page in range(batch_start, batch_end + 1):
                    if state.should_stop:
                        logger.info("Analysis of %s stopped before page %d", document.id, page)
                        return
                    items.extend(await self._analyze_page(document.id, page))
                    self._update(
                        state, current_page=page, current_step=f"page {page}",
                        items_found=len(items),
                        message=f"Extracting items from page {page}",
                    )

            if state.should_stop:
                return
            await self._result_store.save_results(document.id, items)
        except Exception as e:
            logger.exception("Analysis of %s failed", document.id)
            self._update(state, status="failed", message=f"Analysis failed: {e}")
            return

        self._update(
            state, status="completed", current_page=total,
            items_found=len(items), message="Analysis complete",
        )

    async def _analyze_page(self, document_id: str, page: int) -> list[ResultItem]:
        # A page that cannot be converted or analyzed contributes nothing.
        try:
            text = normalize(await self._converter.convert(document_id, page))
            if not text.strip():
                return []
            return await self._page_analyzer(document_id, page, text)
        except Exception as e:
            logger.warning("Skipping page %d of %s: %s", page, document_id, e)
            return []

    @staticmethod
    def _update(state: _RunState, **fields: object) -> None:
        state.progress = state.progress.model_copy(update=fields)
