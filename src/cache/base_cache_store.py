# src/cache/base_cache_store.py — v2
"""Abstract persisted page-text store.

The in-memory ``PageConversionCache`` sits in front of one of these; the
persisted store survives restarts and is invalidated alongside it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseCacheStore(ABC):
    """Unified interface for persisted derived-text storage backends."""

    @abstractmethod
    async def get(self, document_id: str, page_number: int) -> str | None:
        """Return stored derived text for a page, or None."""

    @abstractmethod
    async def put(self, document_id: str, page_number: int, text: str) -> None:
        """Store derived text for a page."""

    @abstractmethod
    async def invalidate(self, document_id: str, page_number: int | None = None) -> None:
        """Remove one page, or every page of the document when page_number is None."""


class NullCacheStore(BaseCacheStore):
    """Store that keeps nothing (CACHE_BACKEND=none)."""

    async def get(self, document_id: str, page_number: int) -> str | None:
        return None

    async def put(self, document_id: str, page_number: int, text: str) -> None:
        return None

    async def invalidate(self, document_id: str, page_number: int | None = None) -> None:
        return None
