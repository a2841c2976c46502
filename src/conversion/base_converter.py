# src/conversion/base_converter.py — v1
"""Converter interfaces: document-level and per-file-type page converters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class ConversionError(Exception):
    """A page could not be converted to derived text. Retry by fetching again."""

    def __init__(self, document_id: str, page_number: int, reason: str):
        self.document_id = document_id
        self.page_number = page_number
        self.reason = reason
        super().__init__(
            f"Conversion of {document_id!r} page {page_number} failed: {reason}"
        )


class BaseConverter(ABC):
    """Converts one page of a known document into raw derived text (Markdown)."""

    @abstractmethod
    async def convert(self, document_id: str, page_number: int) -> str:
        """Return the raw derived text of a page.

        Raises:
            ConversionError: If the page cannot be converted.
        """


class BasePageConverter(ABC):
    """Converts one page of a file of a given type."""

    @property
    @abstractmethod
    def supported_types(self) -> list[str]:
        """Document file types this converter handles (e.g., ['pdf'])."""

    @abstractmethod
    async def convert_page(self, path: Path, page_number: int) -> str:
        """Return the Markdown text of ``page_number`` (1-indexed) of ``path``."""
