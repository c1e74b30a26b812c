"""Abstract base class for source-document extraction providers.

A document provider turns a URL into a title plus plain text.  Two
strategies exist: binary documents (PDF text layer) and rendered web
pages (headless browser plus readability).  The
:class:`~src.services.ingestion.content_extractor.ContentExtractor` picks
one per URL via :meth:`IDocumentProvider.supports`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from bisect import bisect_right
from dataclasses import dataclass


@dataclass(frozen=True)
class ExtractedContent:
    """Text pulled from a source URL.

    Attributes
    ----------
    title:
        Document title (article headline, page title, or file name).
    text:
        Extracted text.  Providers return it raw; the extractor service
        normalizes whitespace and enforces the minimum length.
    url:
        The URL the content was extracted from.
    pages:
        Raw text of each page, in page order, for paginated documents.
        Empty for web pages.
    page_starts:
        ``(offset, page_number)`` pairs marking where each non-empty page
        begins in ``text``.  Filled in by the extractor service.
    """

    title: str
    text: str
    url: str = ""
    pages: tuple[str, ...] = ()
    page_starts: tuple[tuple[int, int], ...] = ()

    def page_at(self, offset: int) -> int | None:
        """Return the 1-based page containing character *offset* of ``text``."""
        if not self.page_starts:
            return None
        index = bisect_right([start for start, _ in self.page_starts], offset) - 1
        return self.page_starts[max(index, 0)][1]


# Concrete implementations: PDFDocumentProvider, RenderedPageProvider
# Located in: src/providers/document/
class IDocumentProvider(ABC):
    """Contract for services that fetch a URL and return its text."""

    @abstractmethod
    def supports(self, url: str) -> bool:
        """Return ``True`` if this provider's strategy applies to *url*.

        Decided from the URL alone; no network access.
        """

    @abstractmethod
    async def extract(self, url: str) -> ExtractedContent:
        """Fetch *url* and extract its title and text.

        Implementations bound every network operation with a timeout.

        Returns
        -------
        ExtractedContent
            The extracted content.  ``text`` may be empty; the caller
            decides whether that is a failure.

        Raises
        ------
        src.utils.errors.ExtractionError
            With ``kind`` set to ``network``, ``timeout``, ``parse`` or
            ``browser``.  Library exceptions never escape unwrapped.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"pymupdf"``."""
