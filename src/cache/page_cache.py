# src/cache/page_cache.py — v1
"""In-memory per-page cache of normalized derived text.

Concurrent fetches of the same page share one conversion: the first caller
starts a task and registers it as in flight, later callers await that same
task. A page is never cached and in flight at the same time; the in-flight
slot is released before the result is stored, with no suspension point in
between.
"""

from __future__ import annotations

import asyncio
import logging

from docorch.conversion.base_converter import BaseConverter, ConversionError
from docorch.conversion.text_normalizer import normalize
from docorch.core.models import PageKey

logger = logging.getLogger(__name__)


class PageConversionCache:
    """Memoizes normalized page text per (document_id, page_number).

    Args:
        converter: Default converter used when ``fetch`` is not given one.
        discard_stale_fills: When True, a fetch that was in flight while its
            page (or document) was invalidated does not refill the cache.
            When False, late fills win.
    """

    def __init__(
        self,
        converter: BaseConverter | None = None,
        *,
        discard_stale_fills: bool = False,
    ) -> None:
        self._converter = converter
        self._discard_stale_fills = discard_stale_fills
        self._entries: dict[PageKey, str] = {}
        self._in_flight: dict[PageKey, asyncio.Task[str]] = {}
        self._document_generation: dict[str, int] = {}
        self._page_generation: dict[PageKey, int] = {}

    # --- Reads ---

    def get(self, key: PageKey) -> str | None:
        """Return cached text for a page, or None. No side effects."""
        return self._entries.get(key)

    def is_in_flight(self, key: PageKey) -> bool:
        return key in self._in_flight

    def cached_pages(self, document_id: str) -> list[int]:
        """Page numbers of a document that currently have cached text."""
        return sorted(k.page_number for k in self._entries if k.document_id == document_id)

    # --- Fill ---

    async def fetch(self, key: PageKey, converter: BaseConverter | None = None) -> str:
        """Return the page's normalized text, converting it at most once.

        Cancelling a waiter never cancels the shared conversion.

        Raises:
            ConversionError: If the converter fails. Nothing is cached, and
                every waiter of that conversion receives the same error.
        """
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        task = self._in_flight.get(key)
        if task is None:
            active = converter or self._converter
            if active is None:
                raise ValueError("PageConversionCache.fetch needs a converter")
            task = asyncio.ensure_future(self._fill(key, active, self._generation(key)))
            task.add_done_callback(_consume_exception)
            self._in_flight[key] = task
            logger.debug("Conversion started for %s", key)
        else:
            logger.debug("Joining in-flight conversion for %s", key)

        return await asyncio.shield(task)

    async def _fill(
        self, key: PageKey, converter: BaseConverter, generation: tuple[int, int]
    ) -> str:
        try:
            raw = await converter.convert(key.document_id, key.page_number)
        except ConversionError as e:
            logger.warning("Conversion failed for %s: %s", key, e.reason)
            raise
        except Exception as e:
            logger.warning("Conversion failed for %s: %s", key, e)
            raise ConversionError(
                key.document_id, key.page_number, str(e) or type(e).__name__
            ) from e
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

        text = normalize(raw)
        if self._generation(key) != generation:
            logger.debug("Discarding stale conversion for %s", key)
            return text
        self._entries[key] = text
        return text

    # --- Invalidation ---

    def invalidate(self, target: PageKey | str) -> None:
        """Drop one page (PageKey) or every page of a document (document id).

        In-flight conversions are not cancelled.
        """
        if isinstance(target, PageKey):
            self._entries.pop(target, None)
            if self._discard_stale_fills:
                self._page_generation[target] = self._page_generation.get(target, 0) + 1
            return

        self._drop_document(target)
        if self._discard_stale_fills:
            self._bump_document(target)

    def clear(self, document_id: str) -> None:
        """Drop all state scoped to a document (called on document unload).

        Conversions still in flight for it complete but are not stored.
        """
        self._drop_document(document_id)
        self._bump_document(document_id)

    def _drop_document(self, document_id: str) -> None:
        for key in [k for k in self._entries if k.document_id == document_id]:
            del self._entries[key]

    def _bump_document(self, document_id: str) -> None:
        self._document_generation[document_id] = (
            self._document_generation.get(document_id, 0) + 1
        )

    def _generation(self, key: PageKey) -> tuple[int, int]:
        return (
            self._document_generation.get(key.document_id, 0),
            self._page_generation.get(key, 0),
        )


def _consume_exception(task: asyncio.Task[str]) -> None:
    # Mark the error retrieved when every waiter was cancelled.
    if not task.cancelled():
        task.exception()
