"""Two-strategy content extraction for ingestion jobs.

Picks a document provider by URL suffix, normalizes the text it returns,
and rejects results that are too short to be worth indexing.  Paginated
documents are normalized page by page so each page's start offset in the
final text is known.
"""

from __future__ import annotations

import structlog

from src.interfaces.document_provider import ExtractedContent, IDocumentProvider
from src.models.rag import DEFAULT_TITLE
from src.utils.errors import ExtractionError, FailureKind
from src.utils.text_normalizer import normalize_text

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SEPARATOR = "\n\n"


def join_pages(pages: tuple[str, ...]) -> tuple[str, tuple[tuple[int, int], ...]]:
    """Normalize and join *pages*, returning the text and its page starts.

    Pages that normalize to nothing are dropped but keep their number, so
    the ``(offset, page_number)`` pairs may skip pages.
    """
    parts: list[str] = []
    starts: list[tuple[int, int]] = []
    offset = 0
    for page_number, raw in enumerate(pages, start=1):
        page_text = normalize_text(raw)
        if not page_text:
            continue
        if parts:
            offset += len(_PAGE_SEPARATOR)
        starts.append((offset, page_number))
        parts.append(page_text)
        offset += len(page_text)
    return _PAGE_SEPARATOR.join(parts), tuple(starts)


class ContentExtractor:
    """Fetches a URL and returns normalized text plus a title.

    Parameters
    ----------
    binary_provider:
        Strategy for recognized binary-document suffixes (``.pdf``).
    page_provider:
        Strategy for everything else (rendered web pages).
    min_content_length:
        Normalized text shorter than this is an ``empty_content`` failure,
        even when the provider raised nothing.
    """

    def __init__(
        self,
        binary_provider: IDocumentProvider,
        page_provider: IDocumentProvider,
        min_content_length: int = 50,
    ) -> None:
        self._binary_provider = binary_provider
        self._page_provider = page_provider
        self._min_content_length = min_content_length

    def select_provider(self, url: str) -> IDocumentProvider:
        if self._binary_provider.supports(url):
            return self._binary_provider
        return self._page_provider

    async def extract(self, url: str) -> ExtractedContent:
        """Extract *url* with the matching strategy.

        Raises
        ------
        src.utils.errors.ExtractionError
            Propagated from the provider, or raised here with
            ``kind=empty_content`` when the normalized text is too short.
        """
        provider = self.select_provider(url)
        logger.info("content_extraction_started", url=url, strategy=provider.get_provider_name())

        content = await provider.extract(url)
        if content.pages:
            text, page_starts = join_pages(content.pages)
        else:
            text, page_starts = normalize_text(content.text), ()
        if len(text) < self._min_content_length:
            raise ExtractionError(
                message=(
                    f"Extracted text too short from {url}: {len(text)} chars "
                    f"(minimum {self._min_content_length})"
                ),
                provider_name=provider.get_provider_name(),
                kind=FailureKind.EMPTY_CONTENT,
            )

        title = content.title.strip() or DEFAULT_TITLE
        return ExtractedContent(title=title, text=text, url=url, page_starts=page_starts)
