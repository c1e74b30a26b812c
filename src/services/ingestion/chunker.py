"""Character-based text chunking with bounded, boundary-aware overlap.

Splits normalized document text into :class:`~src.models.rag.TextSegment`
slices.  Three properties hold for every non-empty input:

1. **Bounded** -- no segment is longer than ``max_chunk_size`` characters.
2. **Overlapping** -- each segment starts inside the previous one, at most
   ``overlap`` characters before the previous segment's end.
3. **Lossless** -- every segment is an exact slice of the input and carries
   its offsets, so :meth:`TextChunker.reconstruct` rebuilds the input
   character for character.

Boundaries are chosen in preference order: paragraph break, line break,
sentence end, word gap, and only then a hard cut.  A chunk end is only
moved back to a boundary that keeps the chunk at least half full, which
stops a paragraph break near the window start from producing a sliver.
The next chunk starts at the earliest preferred boundary inside the
overlap window, so overlap is as large as the bound allows while still
starting on a clean boundary.
"""

from __future__ import annotations

import bisect
import re

import structlog

from src.models.rag import TextSegment
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# Words whose trailing period does not end a sentence ("Dr. Smith").
_ABBREVIATIONS = frozenset(
    {
        "dr", "mr", "mrs", "ms", "prof", "jr", "sr", "st", "vs", "etc",
        "no", "vol", "inc", "ltd", "co", "corp", "dept", "approx", "e.g", "i.e",
        "u.s", "fig", "sec", "art", "para", "pp",
    }
)

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_LINE_BREAK = re.compile(r"\n\s*")
_SENTENCE_END = re.compile(r"[.!?][\"')\]]*\s+")
_WORD_GAP = re.compile(r"\s+")
_PRECEDING_WORD = re.compile(r"([\w.]+)$")


class TextChunker:
    """Splits text into overlapping, size-bounded segments.

    Parameters
    ----------
    max_chunk_size:
        Maximum characters per segment (default 1000).
    overlap:
        Maximum characters shared by consecutive segments (default 200).
        Must be smaller than ``max_chunk_size``.
    """

    def __init__(self, max_chunk_size: int = 1000, overlap: int = 200) -> None:
        if max_chunk_size <= 0:
            raise ConfigurationError(message="max_chunk_size must be positive")
        if not 0 <= overlap < max_chunk_size:
            raise ConfigurationError(
                message=f"overlap ({overlap}) must be >= 0 and < max_chunk_size ({max_chunk_size})"
            )
        self._max_chunk_size = max_chunk_size
        self._overlap = overlap

    @property
    def max_chunk_size(self) -> int:
        return self._max_chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, text: str) -> list[TextSegment]:
        """Split *text* into ordered segments.

        Empty or whitespace-only input yields ``[]``.  So does an internal
        splitter failure, which is logged; the ingestion coordinator treats
        an empty result as "no chunks generated".
        """
        if not text or not text.strip():
            return []

        try:
            segments = self._split(text)
        except Exception:
            logger.exception("chunking_failed", text_length=len(text))
            return []

        logger.info(
            "text_chunked",
            text_length=len(text),
            chunks=len(segments),
            max_chunk_size=self._max_chunk_size,
            overlap=self._overlap,
        )
        return segments

    @staticmethod
    def reconstruct(segments: list[TextSegment]) -> str:
        """Join *segments*, dropping each segment's overlap with its predecessor."""
        if not segments:
            return ""
        parts = [segments[0].text]
        covered = segments[0].char_end
        for segment in segments[1:]:
            parts.append(segment.text[max(covered - segment.char_start, 0):])
            covered = segment.char_end
        return "".join(parts)

    # ------------------------------------------------------------------
    # Splitting
    # ------------------------------------------------------------------

    def _split(self, text: str) -> list[TextSegment]:
        boundaries = self._find_boundaries(text)
        length = len(text)
        segments: list[TextSegment] = []
        start = 0

        while start < length:
            end = self._choose_end(boundaries, start, length)
            segments.append(
                TextSegment(index=len(segments), text=text[start:end], char_start=start, char_end=end)
            )
            if end >= length:
                break
            start = self._choose_next_start(boundaries, start, end)

        return segments

    def _choose_end(self, boundaries: list[list[int]], start: int, length: int) -> int:
        window_end = start + self._max_chunk_size
        if window_end >= length:
            return length

        min_end = start + self._max_chunk_size // 2
        for positions in boundaries:
            # Last boundary p with min_end < p <= window_end.
            idx = bisect.bisect_right(positions, window_end) - 1
            if idx >= 0 and positions[idx] > min_end:
                return positions[idx]
        return window_end

    def _choose_next_start(self, boundaries: list[list[int]], start: int, end: int) -> int:
        if self._overlap == 0:
            return end

        lower = max(end - self._overlap, start + 1)
        for positions in boundaries:
            # First boundary p with lower <= p < end.
            idx = bisect.bisect_left(positions, lower)
            if idx < len(positions) and positions[idx] < end:
                return positions[idx]
        return lower

    @staticmethod
    def _find_boundaries(text: str) -> list[list[int]]:
        """Return sorted boundary offsets per kind, strongest kind first.

        A boundary offset is the index right after the separator, i.e. where
        the next piece of content begins.
        """
        sentence_ends = [
            match.end()
            for match in _SENTENCE_END.finditer(text)
            if not _is_abbreviation(text, match.start())
        ]
        return [
            [match.end() for match in _PARAGRAPH_BREAK.finditer(text)],
            [match.end() for match in _LINE_BREAK.finditer(text)],
            sentence_ends,
            [match.end() for match in _WORD_GAP.finditer(text)],
        ]


def _is_abbreviation(text: str, period_index: int) -> bool:
    if text[period_index] != ".":
        return False
    word = _PRECEDING_WORD.search(text, max(period_index - 16, 0), period_index)
    return bool(word) and word.group(1).lower() in _ABBREVIATIONS
