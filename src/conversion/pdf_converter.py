# src/conversion/pdf_converter.py — v1
"""PDF page converter using PyMuPDF (fitz).

Extracts the text layer of a single page and shapes it as Markdown.
Requires the 'pymupdf' package.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from docorch.conversion.base_converter import BasePageConverter

logger = logging.getLogger(__name__)

_NUMBERED_HEADING = re.compile(r"^(\d+(\.\d+)*|[IVX]+)[.)]?\s+\S")
_HEADING_MAX_CHARS = 60


class PdfPageConverter(BasePageConverter):
    """Converter for PDF pages with a text layer."""

    @property
    def supported_types(self) -> list[str]:
        return ["pdf"]

    async def convert_page(self, path: Path, page_number: int) -> str:
        """Extract one page's text and format it as Markdown."""
        text = await asyncio.to_thread(self._extract_page_text, path, page_number)
        if not text.strip():
            raise ValueError(f"page {page_number} has no text layer")
        return format_as_markdown(text)

    @staticmethod
    def _extract_page_text(path: Path, page_number: int) -> str:
        try:
            import fitz  # PyMuPDF
        except ImportError as e:
            raise ImportError(
                "pymupdf package required for PDF conversion: pip install pymupdf"
            ) from e

        doc = fitz.open(str(path))
        try:
            if not 1 <= page_number <= len(doc):
                raise ValueError(
                    f"page {page_number} out of range (document has {len(doc)} pages)"
                )
            return doc[page_number - 1].get_text("text")
        finally:
            doc.close()


def format_as_markdown(text: str) -> str:
    """Shape extracted page text as Markdown.

    Blank lines become paragraph breaks. Short numbered lines become ``##``
    headings and short all-caps lines become ``###`` headings.
    """
    lines: list[str] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            if lines and lines[-1] != "":
                lines.append("")
            continue
        if len(line) <= _HEADING_MAX_CHARS and _NUMBERED_HEADING.match(line):
            lines.extend([f"## {line}", ""])
        elif len(line) <= _HEADING_MAX_CHARS and line.isupper():
            lines.extend([f"### {line}", ""])
        else:
            lines.append(line)
    return "\n".join(lines).strip() + "\n"
