# src/cache/cache_factory.py — v3
"""Factory for persisted cache store instantiation."""

from __future__ import annotations

from docorch.cache.base_cache_store import BaseCacheStore, NullCacheStore
from docorch.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the configured persisted cache backend.

    Args:
        settings: Application settings. Defaults to the file backend under
            the default storage root.

    Returns:
        Configured BaseCacheStore implementation.
    """
    backend = "file" if settings is None else settings.cache_backend

    if backend == "file":
        from docorch.cache.file_store import FileCacheStore
        root = (
            Settings(_env_file=None).resolved_storage_root  # type: ignore[call-arg]
            if settings is None
            else settings.resolved_storage_root
        )
        return FileCacheStore(root=root)

    if backend == "none":
        return NullCacheStore()

    raise ValueError(f"Unsupported cache backend: {backend!r}")
