# src/analysis/json_result_store.py — v1
"""JSON file result store.

Layout: ``<root>/<document_id>/questions/all_questions.json``, a JSON array
of result items.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from pydantic import TypeAdapter

from docorch.analysis.base_engine import BaseResultStore
from docorch.core.models import ResultItem

logger = logging.getLogger(__name__)

_RESULTS_ADAPTER = TypeAdapter(list[ResultItem])


class JsonResultStore(BaseResultStore):
    """Reads and writes a document's result items as one JSON file."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()

    async def get_results(self, document_id: str) -> list[ResultItem]:
        """Return stored items; an absent file means no results yet."""
        path = self.results_path(document_id)
        if not path.exists():
            return []
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return _RESULTS_ADAPTER.validate_python(json.loads(raw))

    async def save_results(self, document_id: str, items: list[ResultItem]) -> Path:
        """Replace the stored items of a document."""
        path = self.results_path(document_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = _RESULTS_ADAPTER.dump_json(items, indent=2).decode("utf-8")
        await asyncio.to_thread(path.write_text, payload, encoding="utf-8")
        logger.debug("Saved %d results to %s", len(items), path)
        return path

    def results_path(self, document_id: str) -> Path:
        safe_id = document_id.replace("/", "_").replace("\\", "_")
        return self._root / safe_id / "questions" / "all_questions.json"
