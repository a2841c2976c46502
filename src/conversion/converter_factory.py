# src/conversion/converter_factory.py — v1
"""Factory: pick the page converter for a document's file type.

``DocumentConverter`` is the document-level converter handed to the page
cache: it resolves a document id to its metadata and dispatches on
``file_type``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from docorch.conversion.base_converter import (
    BaseConverter,
    BasePageConverter,
    ConversionError,
)
from docorch.conversion.pdf_converter import PdfPageConverter
from docorch.conversion.txt_converter import TxtPageConverter
from docorch.core.models import DocumentInfo

logger = logging.getLogger(__name__)

# Registry maps file type -> page converter class.
_CONVERTER_REGISTRY: dict[str, type[BasePageConverter]] = {}


def _register_defaults() -> None:
    """Register built-in page converters."""
    for cls in [PdfPageConverter, TxtPageConverter]:
        instance = cls()
        for file_type in instance.supported_types:
            _CONVERTER_REGISTRY[file_type.lower()] = cls


_register_defaults()


class UnsupportedDocumentTypeError(ValueError):
    """Raised when no page converter is available for a file type."""


def create_page_converter(file_type: str) -> BasePageConverter:
    """Create a page converter for the given file type.

    Args:
        file_type: Document type, with or without a leading dot ("pdf", ".txt").

    Raises:
        UnsupportedDocumentTypeError: If no converter is registered.
    """
    key = file_type.lower().lstrip(".")
    cls = _CONVERTER_REGISTRY.get(key)
    if cls is None:
        raise UnsupportedDocumentTypeError(
            f"No converter for document type {key!r}. "
            f"Supported: {', '.join(sorted(_CONVERTER_REGISTRY))}"
        )
    return cls()


def register_page_converter(file_type: str, cls: type[BasePageConverter]) -> None:
    """Register a custom page converter for a file type."""
    _CONVERTER_REGISTRY[file_type.lower().lstrip(".")] = cls


def supported_types() -> list[str]:
    """Return list of supported document types."""
    return sorted(_CONVERTER_REGISTRY.keys())


class DocumentConverter(BaseConverter):
    """Document-level converter dispatching on each document's file type."""

    def __init__(self, documents: Mapping[str, DocumentInfo] | None = None) -> None:
        self._documents: dict[str, DocumentInfo] = dict(documents or {})

    def add_document(self, document: DocumentInfo) -> None:
        self._documents[document.id] = document

    async def convert(self, document_id: str, page_number: int) -> str:
        document = self._documents.get(document_id)
        if document is None:
            raise ConversionError(document_id, page_number, "unknown document")
        if page_number > document.total_pages:
            raise ConversionError(
                document_id, page_number,
                f"page out of range (document has {document.total_pages} pages)",
            )

        try:
            page_converter = create_page_converter(document.file_type)
        except UnsupportedDocumentTypeError as e:
            raise ConversionError(document_id, page_number, str(e)) from e

        logger.debug(
            "Converting %s page %d with %s",
            document_id, page_number, type(page_converter).__name__,
        )
        try:
            return await page_converter.convert_page(Path(document.path), page_number)
        except (OSError, ValueError, RuntimeError) as e:
            raise ConversionError(document_id, page_number, str(e)) from e
