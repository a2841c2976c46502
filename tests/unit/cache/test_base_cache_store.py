# tests/unit/cache/test_base_cache_store.py — v2
"""Tests for cache/base_cache_store.py — BaseCacheStore ABC and NullCacheStore."""

from __future__ import annotations

import pytest

from docorch.cache.base_cache_store import BaseCacheStore, NullCacheStore


class TestBaseCacheStore:
    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            BaseCacheStore()  # type: ignore[abstract]

    def test_has_required_methods(self):
        for method in ["get", "put", "invalidate"]:
            assert hasattr(BaseCacheStore, method)


class TestNullCacheStore:
    @pytest.mark.asyncio
    async def test_keeps_nothing(self):
        store = NullCacheStore()
        await store.put("doc_001", 1, "# Page")
        assert await store.get("doc_001", 1) is None

    @pytest.mark.asyncio
    async def test_invalidate_is_noop(self):
        store = NullCacheStore()
        await store.invalidate("doc_001")
        await store.invalidate("doc_001", 3)
