"""Whitespace normalization for extracted document text.

PDF text layers and rendered pages both produce ragged whitespace: CRLF
line endings, runs of spaces from column layouts, non-breaking spaces,
zero-width characters and long blank gaps between blocks.  Normalizing
once, before chunking, keeps chunk sizes meaningful and makes the
chunker's boundary detection see one paragraph break per gap.
"""

import re

_ZERO_WIDTH = re.compile(r"[\u200b\u200c\u200d\u2060\ufeff]")
_HORIZONTAL_SPACE = re.compile(r"[ \t\f\v\u00a0\u2000-\u200a\u202f\u3000]+")
_TRAILING_SPACE = re.compile(r" +\n")
_LEADING_SPACE = re.compile(r"\n +")
_BLANK_RUN = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Return *text* with whitespace normalized.

    Line endings become ``\\n``, horizontal whitespace runs become a single
    space, lines are trimmed, and blank runs collapse to one empty line
    (a paragraph break).  The result is stripped.

    Args:
        text: Raw extracted text.

    Returns:
        The normalized text, possibly empty.
    """
    if not text:
        return ""

    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _ZERO_WIDTH.sub("", normalized)
    normalized = _HORIZONTAL_SPACE.sub(" ", normalized)
    normalized = _TRAILING_SPACE.sub("\n", normalized)
    normalized = _LEADING_SPACE.sub("\n", normalized)
    normalized = _BLANK_RUN.sub("\n\n", normalized)
    return normalized.strip()
