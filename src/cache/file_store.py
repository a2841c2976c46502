# src/cache/file_store.py — v1
"""File-based persisted cache store (default CACHE_BACKEND=file).

Layout: ``<root>/<document_id>/markdown/<NNNN>_page.md``.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

from docorch.cache.base_cache_store import BaseCacheStore

logger = logging.getLogger(__name__)


class FileCacheStore(BaseCacheStore):
    """Persisted derived text, one Markdown file per page."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    async def get(self, document_id: str, page_number: int) -> str | None:
        """Read stored page text, None when absent or unreadable."""
        path = self.page_path(document_id, page_number)
        if not path.exists():
            return None
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read cached page %s: %s", path, e)
            return None

    async def put(self, document_id: str, page_number: int, text: str) -> None:
        """Write page text, creating the document's markdown directory."""
        path = self.page_path(document_id, page_number)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_text, text, encoding="utf-8")

    async def invalidate(self, document_id: str, page_number: int | None = None) -> None:
        """Delete one cached page or the whole markdown directory."""
        if page_number is None:
            directory = self._markdown_dir(document_id)
            if directory.is_dir():
                await asyncio.to_thread(shutil.rmtree, directory)
                logger.debug("Removed persisted pages for %s", document_id)
            return

        path = self.page_path(document_id, page_number)
        if path.exists():
            path.unlink()
            logger.debug("Removed persisted page %s", path.name)

    def page_path(self, document_id: str, page_number: int) -> Path:
        """Return file path for a cached page."""
        return self._markdown_dir(document_id) / f"{page_number:04d}_page.md"

    def _markdown_dir(self, document_id: str) -> Path:
        safe_id = document_id.replace("/", "_").replace("\\", "_")
        return self._root / safe_id / "markdown"
