"""Binary-document provider using httpx and PyMuPDF.

Downloads the file with a bounded timeout and reads its text layer page
by page.  Scanned PDFs without a text layer come back with empty text,
which the extractor service then rejects as too short.
"""

from __future__ import annotations

import asyncio
from urllib.parse import unquote, urlparse

import fitz  # PyMuPDF
import httpx
import structlog

from src.interfaces.document_provider import ExtractedContent, IDocumentProvider
from src.utils.errors import ExtractionError, FailureKind

logger = structlog.get_logger(logger_name=__name__)

BINARY_DOCUMENT_SUFFIXES: tuple[str, ...] = (".pdf",)

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; ragstream/0.1)",
    "Accept": "application/pdf,*/*;q=0.8",
}


def has_binary_suffix(url: str) -> bool:
    """Return ``True`` if the URL path ends in a binary-document suffix.

    Query strings and fragments are ignored; the match is case-insensitive.
    """
    return urlparse(url).path.lower().endswith(BINARY_DOCUMENT_SUFFIXES)


def title_from_url(url: str) -> str:
    """Return the last path segment of *url*, e.g. ``"a.pdf"``."""
    segment = unquote(urlparse(url).path.rstrip("/").rsplit("/", 1)[-1])
    return segment or "Untitled Document"


class PDFDocumentProvider(IDocumentProvider):
    """Downloads a PDF and extracts its text layer with PyMuPDF."""

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )

    def supports(self, url: str) -> bool:
        return has_binary_suffix(url)

    async def extract(self, url: str) -> ExtractedContent:
        data = await self._download(url)
        pages = await asyncio.to_thread(self._read_text_layer, data, url)
        text = "\n\n".join(page.strip() for page in pages if page.strip())

        logger.info(
            "pdf_extracted", url=url, bytes=len(data), pages=len(pages), text_length=len(text)
        )
        return ExtractedContent(
            title=title_from_url(url), text=text, url=url, pages=tuple(pages)
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_provider_name(self) -> str:
        return "pymupdf"

    async def _download(self, url: str) -> bytes:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExtractionError(
                message=f"Timeout downloading {url}: {exc}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.TIMEOUT,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                message=f"HTTP {exc.response.status_code} for {url}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.NETWORK,
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"HTTP error downloading {url}: {exc}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.NETWORK,
            ) from exc
        return response.content

    def _read_text_layer(self, data: bytes, url: str) -> list[str]:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise ExtractionError(
                message=f"Could not parse PDF from {url}: {exc}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.PARSE,
            ) from exc

        try:
            pages = [doc[page_num].get_text("text") for page_num in range(len(doc))]
        except (RuntimeError, ValueError) as exc:
            raise ExtractionError(
                message=f"Could not read text layer of {url}: {exc}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.PARSE,
            ) from exc
        finally:
            doc.close()

        return pages
