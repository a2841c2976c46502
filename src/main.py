# src/main.py — v2
"""CLI entry point — normalize and convert commands.

Usage:
    docorch normalize <file>
    docorch convert <file> [--page N]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from docorch.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docorch",
        description=f"docorch v{__version__} — document conversion and analysis",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- normalize ---
    p_normalize = subparsers.add_parser(
        "normalize", help="Normalize Markdown/LaTeX text from a file",
    )
    p_normalize.add_argument("file", type=Path, help="Path to a text file")
    p_normalize.set_defaults(func=_cmd_normalize)

    # --- convert ---
    p_convert = subparsers.add_parser(
        "convert", help="Convert one page of a document to normalized Markdown",
    )
    p_convert.add_argument("file", type=Path, help="Path to document")
    p_convert.add_argument(
        "-p", "--page", type=int, default=1,
        help="1-based page number (default: 1)",
    )
    p_convert.set_defaults(func=_cmd_convert)

    return parser


async def _cmd_normalize(args: argparse.Namespace) -> int:
    """Print the normalized contents of a file."""
    from docorch.conversion.text_normalizer import normalize

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1

    raw = file_path.read_text(encoding="utf-8", errors="replace")
    sys.stdout.write(normalize(raw))
    sys.stdout.write("\n")
    return 0


async def _cmd_convert(args: argparse.Namespace) -> int:
    """Convert a single page and print its normalized text."""
    from docorch.conversion.base_converter import ConversionError
    from docorch.conversion.converter_factory import DocumentConverter, supported_types
    from docorch.conversion.text_normalizer import normalize
    from docorch.core.models import DocumentInfo

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1
    if args.page < 1:
        logger.error("Page numbers start at 1, got %d", args.page)
        return 1

    file_type = file_path.suffix.lower().lstrip(".")
    if file_type not in supported_types():
        logger.error("Unsupported format: %s", file_path.suffix)
        return 1

    # Page bounds are checked by the page converter itself.
    document = DocumentInfo(
        id=file_path.stem,
        name=file_path.name,
        file_type=file_type,
        path=str(file_path),
        total_pages=args.page,
    )
    converter = DocumentConverter({document.id: document})

    logger.info("Converting %s page %d", file_path.name, args.page)
    try:
        text = await converter.convert(document.id, args.page)
    except ConversionError as e:
        logger.error("%s", e)
        return 1

    sys.stdout.write(normalize(text))
    sys.stdout.write("\n")
    return 0


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage from the LOG_* settings."""
    from docorch.config.settings import Settings
    from docorch.logging.logger import configure_from_settings

    configure_from_settings(Settings(), level="DEBUG" if verbose else None)


if __name__ == "__main__":
    sys.exit(main())
