# src/api/session.py — v1
"""Document session — owns the page cache, render controller and job monitor.

Usage:
    session = DocumentSession(settings, engine=engine)
    await session.open_document(document)
    await session.controller.set_mode("derived")
    await session.start_analysis()
"""

from __future__ import annotations

import logging
from typing import Callable

from docorch.analysis.base_engine import BaseAnalysisEngine, BaseResultStore
from docorch.analysis.job_monitor import AnalysisJobMonitor
from docorch.analysis.json_result_store import JsonResultStore
from docorch.cache.base_cache_store import BaseCacheStore, NullCacheStore
from docorch.cache.cache_factory import create_cache_store
from docorch.cache.page_cache import PageConversionCache
from docorch.config.settings import Settings
from docorch.conversion.base_converter import BaseConverter
from docorch.conversion.converter_factory import DocumentConverter
from docorch.conversion.persisted_converter import PersistedConverter
from docorch.core.models import AnalysisJob, DocumentInfo, PageView
from docorch.logging.context import clear_context, set_document_context
from docorch.preview.render_controller import RenderModeController

logger = logging.getLogger(__name__)


class DocumentSession:
    """Wires the orchestration components for one viewer window.

    Args:
        settings: Application settings. Loaded from the environment if None.
        converter: Document-level converter. Defaults to a DocumentConverter
            that learns each opened document.
        cache_store: Persisted page store. Built from settings if None.
        engine: Analysis engine. Without one, analysis operations are
            unavailable.
        result_store: Result source for completed jobs. Defaults to the
            JSON store under the storage root.
        on_view: Receives every page view the controller publishes.
        on_progress: Receives the job after each progress update.
        on_results: Receives the job once its results are available.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        converter: BaseConverter | None = None,
        cache_store: BaseCacheStore | None = None,
        engine: BaseAnalysisEngine | None = None,
        result_store: BaseResultStore | None = None,
        on_view: Callable[[PageView], None] | None = None,
        on_progress: Callable[[AnalysisJob], None] | None = None,
        on_results: Callable[[AnalysisJob], None] | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._cache_store = cache_store or create_cache_store(self._settings)

        self._document_converter = converter if converter is not None else DocumentConverter()
        active: BaseConverter = self._document_converter
        if not isinstance(self._cache_store, NullCacheStore):
            active = PersistedConverter(active, self._cache_store)

        self._cache = PageConversionCache(
            active, discard_stale_fills=self._settings.cache_discard_stale_fills,
        )
        self._controller = RenderModeController(
            self._cache, active, cache_store=self._cache_store, on_view=on_view,
        )

        self._monitor: AnalysisJobMonitor | None = None
        if engine is not None:
            self._monitor = AnalysisJobMonitor(
                engine,
                result_store or JsonResultStore(self._settings.resolved_storage_root),
                poll_interval_s=self._settings.analysis_poll_interval_s,
                poll_failure_limit=self._settings.analysis_poll_failure_limit,
                on_progress=on_progress,
                on_results=on_results,
            )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def cache(self) -> PageConversionCache:
        return self._cache

    @property
    def controller(self) -> RenderModeController:
        return self._controller

    @property
    def monitor(self) -> AnalysisJobMonitor | None:
        return self._monitor

    @property
    def document(self) -> DocumentInfo | None:
        return self._controller.document

    async def open_document(self, document: DocumentInfo) -> PageView:
        """Show a document, leaving any job of the previous one running unobserved."""
        previous = self._controller.document
        if previous is not None and previous.id != document.id and self._monitor is not None:
            self._monitor.release(previous.id)

        if isinstance(self._document_converter, DocumentConverter):
            self._document_converter.add_document(document)
        set_document_context(document.id)
        return self._controller.load_document(document)

    async def start_analysis(self) -> AnalysisJob:
        """Start analysing the open document.

        Raises:
            RuntimeError: If no document is open or no engine was provided.
            AlreadyRunningError: If another document's job is running.
        """
        monitor = self._require_monitor()
        return await monitor.start(self._require_document().id)

    async def stop_analysis(self) -> None:
        monitor = self._require_monitor()
        await monitor.stop(self._require_document().id)

    async def close(self) -> None:
        """Stop observing analysis and drop every cached page."""
        document = self._controller.document
        if document is not None and self._monitor is not None:
            self._monitor.release(document.id)
        self._controller.unload_document()
        clear_context()
        logger.info("Session closed")

    def _require_document(self) -> DocumentInfo:
        document = self._controller.document
        if document is None:
            raise RuntimeError("No document is open")
        return document

    def _require_monitor(self) -> AnalysisJobMonitor:
        if self._monitor is None:
            raise RuntimeError("Session has no analysis engine")
        return self._monitor
