# src/conversion/text_normalizer.py — v1
"""Normalize LaTeX math embedded in converted Markdown pages.

Converters (OCR, VLM, PDF text layers) emit math that the Markdown/KaTeX
renderer chokes on: bare block environments, doubled line breaks, full-width
punctuation inside ``$...$``, unescaped ``%``. ``normalize`` rewrites those
shapes in a fixed order. Later steps assume earlier ones ran.

The function is pure, deterministic and idempotent, and never raises: a step
that fails is skipped and the text from the previous step is kept.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterator

logger = logging.getLogger(__name__)

_ENV_NAMES = (
    "aligned|equation|gather|align|split|cases|"
    "matrix|pmatrix|bmatrix|vmatrix|array"
)

# Outermost recognized environment block, starred variants included.
_ENV_BLOCK = re.compile(
    r"\\begin\{(" + _ENV_NAMES + r")(\*?)\}.*?\\end\{\1\2\}",
    re.DOTALL,
)

# Existing math spans. Display is tried first; an inline "$" never opens on "$$".
_MATH_SPAN = re.compile(
    r"(?P<display>\$\$.+?\$\$|(?<!\\)\\\[.+?\\\])"
    r"|(?P<inline>(?<!\\)\\\(.+?\\\)|(?<!\\)\$(?!\$)(?:\\.|[^$\\\n])+\$)",
    re.DOTALL,
)

# One or more "\\" row breaks with optional [dim] argument and surrounding space.
_ROW_BREAK = re.compile(r"[ \t]*(?:\\\\)+(\[[^\]\n]*\])?\s*")

_ADJACENT_DISPLAY = re.compile(r"\$\$[ \t]*\n?[ \t]*\$\$")
_QUAD_BACKSLASH = re.compile(r"(?<!\\)\\{4}(?!\\)")
_FULLWIDTH = {"．": ".", "。": ".", "，": ",", "％": "\\%"}
_FULLWIDTH_CHARS = re.compile("[．。，％]")
_BARE_PERCENT = re.compile(r"(?<=\d)%(?!\$\$)")
_BLANK_RUN = re.compile(r"\n(?:[ \t]*\n){2,}")
_TIMES_AFTER_DIGIT = re.compile(r"(?<=\d)\\times")
_TIMES_BEFORE_DIGIT = re.compile(r"\\times(?=\d)")
_ALIGN_OPERATOR = re.compile(r"[ \t]*&[ \t]*([=<>])[ \t]*")


def normalize(raw: str) -> str:
    """Return ``raw`` with its math markup normalized for rendering.

    Args:
        raw: Derived page text as produced by a converter.

    Returns:
        Normalized text. ``normalize(normalize(x)) == normalize(x)``.
    """
    if not isinstance(raw, str):
        return ""

    text = raw.replace("\r\n", "\n")
    for step in _STEPS:
        try:
            text = step(text)
        except Exception:
            logger.debug("Normalization step %s skipped", step.__name__, exc_info=True)
    return text


def split_math(text: str) -> Iterator[tuple[str, str]]:
    """Split text into ("text" | "display" | "inline", chunk) segments."""
    pos = 0
    for match in _MATH_SPAN.finditer(text):
        if match.start() > pos:
            yield "text", text[pos:match.start()]
        kind = "display" if match.group("display") else "inline"
        yield kind, match.group(0)
        pos = match.end()
    if pos < len(text):
        yield "text", text[pos:]


# --- Steps, in application order ---


def wrap_environments(text: str) -> str:
    """Step 1: wrap bare block environments in $$ and canonicalize row breaks."""
    parts: list[str] = []
    for kind, chunk in split_math(text):
        if kind == "text":
            chunk = _ENV_BLOCK.sub(
                lambda m: "$$" + _canonical_row_breaks(m.group(0)) + "$$", chunk
            )
        elif kind == "display":
            chunk = _ENV_BLOCK.sub(lambda m: _canonical_row_breaks(m.group(0)), chunk)
        parts.append(chunk)
    return "".join(parts)


def collapse_adjacent_displays(text: str) -> str:
    """Step 2: merge "$$ $$" seams left between neighbouring display blocks."""
    return _ADJACENT_DISPLAY.sub("\n", text)


def fix_quadruple_backslashes(text: str) -> str:
    """Step 3: "\\\\\\\\" -> "\\\\"."""
    return _QUAD_BACKSLASH.sub(lambda _m: "\\\\", text)


def fix_fullwidth_in_inline_math(text: str) -> str:
    """Step 4: full-width period, comma and percent inside inline math."""
    return "".join(
        _FULLWIDTH_CHARS.sub(lambda m: _FULLWIDTH[m.group(0)], chunk) if kind == "inline" else chunk
        for kind, chunk in split_math(text)
    )


def isolate_display_delimiters(text: str) -> str:
    """Step 5: every $$ sits on its own line, with no blank lines added."""
    parts: list[str] = []
    after_display = False
    for kind, chunk in split_math(text):
        if kind == "display" and chunk.startswith("$$"):
            if parts:
                before = parts[-1].rstrip(" \t")
                if before and not before.endswith("\n"):
                    before += "\n"
                parts[-1] = before
            inner = chunk[2:-2].strip(" \t")
            if not inner.startswith("\n"):
                inner = "\n" + inner
            if not inner.endswith("\n"):
                inner += "\n"
            chunk = "$$" + inner + "$$"
            after_display = True
        elif after_display:
            # Whitespace-only chunks vanish; the next chunk still starts a new line.
            chunk = chunk.lstrip(" \t")
            if chunk:
                if not chunk.startswith("\n"):
                    chunk = "\n" + chunk
                after_display = False
        parts.append(chunk)
    return "".join(parts)


def escape_percent_after_digit(text: str) -> str:
    """Step 6: "50%" -> "50\\%" (% starts a comment in TeX)."""
    return _BARE_PERCENT.sub(lambda _m: "\\%", text)


def collapse_blank_lines(text: str) -> str:
    """Step 7: three or more line breaks become one blank line."""
    return _BLANK_RUN.sub("\n\n", text)


def space_times_operator(text: str) -> str:
    """Step 8: "2\\times3" -> "2 \\times 3"."""
    text = _TIMES_AFTER_DIGIT.sub(lambda _m: " \\times", text)
    return _TIMES_BEFORE_DIGIT.sub(lambda _m: "\\times ", text)


def tighten_alignment_operators(text: str) -> str:
    """Step 9: "x &= 1" -> "x&=1" inside environments."""
    return _ENV_BLOCK.sub(lambda m: _ALIGN_OPERATOR.sub(r"&\1", m.group(0)), text)


_STEPS: tuple[Callable[[str], str], ...] = (
    wrap_environments,
    collapse_adjacent_displays,
    fix_quadruple_backslashes,
    fix_fullwidth_in_inline_math,
    isolate_display_delimiters,
    escape_percent_after_digit,
    collapse_blank_lines,
    space_times_operator,
    tighten_alignment_operators,
)


def _canonical_row_breaks(block: str) -> str:
    def _replace(match: re.Match[str]) -> str:
        return "\\\\" + (match.group(1) or "") + "\n"

    return _ROW_BREAK.sub(_replace, block)
