# src/preview/render_controller.py — v1
"""Page navigation and render-mode state for the loaded document.

Every navigation or mode change publishes a ``PageView``: the source marker,
the cached normalized text, or an explicit loading/error state. Requests are
numbered; a fetch that completes after a newer request was made still fills
the cache but does not replace the published view (last request wins).
"""

from __future__ import annotations

import logging
from typing import Callable

from docorch.cache.base_cache_store import BaseCacheStore
from docorch.cache.page_cache import PageConversionCache
from docorch.conversion.base_converter import BaseConverter, ConversionError
from docorch.core.models import DocumentInfo, PageKey, PageView, RenderMode, requires_cache
from docorch.logging.context import set_page_context

logger = logging.getLogger(__name__)

_MODES: tuple[str, ...] = ("source", "derived", "raw")


class RenderModeController:
    """State machine over {mode, current_page, total_pages} for one document."""

    def __init__(
        self,
        cache: PageConversionCache,
        converter: BaseConverter | None = None,
        cache_store: BaseCacheStore | None = None,
        on_view: Callable[[PageView], None] | None = None,
    ) -> None:
        self._cache = cache
        self._converter = converter
        self._cache_store = cache_store
        self._on_view = on_view
        self._document: DocumentInfo | None = None
        self._mode: RenderMode = "source"
        self._current_page = 1
        self._total_pages = 0
        self._view = PageView()
        self._request_seq = 0

    # --- Read accessors ---

    @property
    def document(self) -> DocumentInfo | None:
        return self._document

    @property
    def mode(self) -> RenderMode:
        return self._mode

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def total_pages(self) -> int:
        return self._total_pages

    @property
    def view(self) -> PageView:
        return self._view

    # --- Document lifecycle ---

    def load_document(self, document: DocumentInfo) -> PageView:
        """Adopt a document: page 1, source mode, previous document's cache cleared."""
        if self._document is not None:
            self._cache.clear(self._document.id)
        self._document = document
        self._current_page = 1
        self._total_pages = document.total_pages
        self._mode = "source"
        logger.info("Loaded %s (%d pages)", document.id, document.total_pages)
        self._request_seq += 1
        return self._publish(self._source_view())

    def unload_document(self) -> None:
        if self._document is not None:
            self._cache.clear(self._document.id)
            logger.info("Unloaded %s", self._document.id)
        self._document = None
        self._current_page = 1
        self._total_pages = 0
        self._mode = "source"
        self._request_seq += 1
        self._publish(PageView())

    # --- Transitions ---

    async def set_mode(self, mode: RenderMode) -> PageView:
        """Switch render mode, filling the cache first when the mode needs it.

        Raises:
            ValueError: If ``mode`` is not a known render mode.
            ConversionError: If the page fill fails; calling again retries.
        """
        if mode not in _MODES:
            raise ValueError(f"Unknown render mode: {mode!r}")
        if self._document is None:
            self._mode = mode
            return self._view
        if mode != self._mode:
            logger.debug("Mode %s -> %s", self._mode, mode)
        self._mode = mode
        return await self._render()

    async def go_to_page(self, page_number: int) -> PageView:
        """Move to a page; out-of-range requests are ignored."""
        if self._document is None or not 1 <= page_number <= self._total_pages:
            logger.debug("Ignoring navigation to page %s", page_number)
            return self._view
        self._current_page = page_number
        return await self._render()

    async def next_page(self) -> PageView:
        return await self.go_to_page(self._current_page + 1)

    async def prev_page(self) -> PageView:
        return await self.go_to_page(self._current_page - 1)

    async def refresh_current_page(self) -> PageView:
        """Forget the current page everywhere, then re-fetch if the mode needs it.

        Persisted-store failures are logged and do not block the refresh.
        """
        if self._document is None:
            return self._view
        key = self._current_key()
        self._cache.invalidate(key)
        if self._cache_store is not None:
            try:
                await self._cache_store.invalidate(key.document_id, key.page_number)
            except Exception:
                logger.warning(
                    "Persisted cache invalidation failed for %s (non-fatal)", key,
                    exc_info=True,
                )
        return await self._render()

    async def convert_current_page(self, force: bool = False) -> PageView:
        """Convert the current page and show it in derived mode.

        Args:
            force: Discard any cached conversion of the page first.
        """
        if self._document is None:
            return self._view
        self._mode = "derived"
        if force:
            return await self.refresh_current_page()
        return await self._render()

    # --- Rendering ---

    async def _render(self) -> PageView:
        self._request_seq += 1
        seq = self._request_seq
        page = self._current_page
        set_page_context(page)

        if not requires_cache(self._mode):
            return self._publish(self._source_view())

        key = self._current_key()
        mode = self._mode
        cached = self._cache.get(key)
        if cached is not None:
            return self._publish(self._page_view(page, mode, state="ready", content=cached))

        self._publish(self._page_view(page, mode, state="loading"))
        try:
            text = await self._cache.fetch(key, self._converter)
        except ConversionError as e:
            if seq == self._request_seq:
                self._publish(self._page_view(page, mode, state="error", error=str(e)))
            raise

        if seq != self._request_seq:
            logger.debug("Page %d converted after a newer request; cached only", page)
            return self._view
        return self._publish(self._page_view(page, mode, state="ready", content=text))

    def _current_key(self) -> PageKey:
        assert self._document is not None
        return PageKey(document_id=self._document.id, page_number=self._current_page)

    def _source_view(self) -> PageView:
        return self._page_view(self._current_page, self._mode, state="source")

    def _page_view(self, page: int, mode: RenderMode, **fields: object) -> PageView:
        return PageView(
            document_id=self._document.id if self._document else None,
            page_number=page,
            mode=mode,
            **fields,  # type: ignore[arg-type]
        )

    def _publish(self, view: PageView) -> PageView:
        self._view = view
        if self._on_view is not None:
            self._on_view(view)
        return view
