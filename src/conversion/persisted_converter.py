# src/conversion/persisted_converter.py — v1
"""Converter decorator backed by a persisted cache store.

Reads previously converted pages from the store and writes fresh
conversions back, so pages converted in an earlier session are not
converted again.
"""

from __future__ import annotations

import logging

from docorch.cache.base_cache_store import BaseCacheStore
from docorch.conversion.base_converter import BaseConverter

logger = logging.getLogger(__name__)


class PersistedConverter(BaseConverter):
    """Wrap a converter with read-through / write-back persistence."""

    def __init__(self, inner: BaseConverter, store: BaseCacheStore) -> None:
        self._inner = inner
        self._store = store

    async def convert(self, document_id: str, page_number: int) -> str:
        stored = await self._store.get(document_id, page_number)
        if stored is not None:
            logger.debug("Persisted hit for %s page %d", document_id, page_number)
            return stored

        text = await self._inner.convert(document_id, page_number)
        try:
            await self._store.put(document_id, page_number, text)
        except OSError:
            logger.warning(
                "Could not persist %s page %d (non-fatal)",
                document_id, page_number, exc_info=True,
            )
        return text
