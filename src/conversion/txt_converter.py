# src/conversion/txt_converter.py — v1
"""Plain text converter — the whole file is a single page."""

from __future__ import annotations

import asyncio
from pathlib import Path

from docorch.conversion.base_converter import BasePageConverter


class TxtPageConverter(BasePageConverter):
    """Converter for plain text and Markdown files."""

    @property
    def supported_types(self) -> list[str]:
        return ["txt", "md"]

    async def convert_page(self, path: Path, page_number: int) -> str:
        if page_number != 1:
            raise ValueError(f"text documents have a single page, got {page_number}")
        raw = await asyncio.to_thread(Path(path).read_bytes)
        return raw.decode("utf-8", errors="replace")
