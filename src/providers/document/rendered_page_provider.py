"""Rendered web page provider using Playwright, trafilatura and BeautifulSoup.

Each extraction opens its own browser context on the shared Chromium
instance, blocks images, media, fonts and stylesheets, waits for the
network to go idle and reads the final DOM.  trafilatura isolates the
article; when it finds nothing substantial the visible body text is used
instead.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass

import structlog
import trafilatura
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Route
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.interfaces.document_provider import ExtractedContent, IDocumentProvider
from src.providers.document.browser_handle import BrowserHandle
from src.providers.document.pdf_provider import has_binary_suffix
from src.utils.errors import ExtractionError, FailureKind

logger = structlog.get_logger(logger_name=__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font", "stylesheet"})

_INVISIBLE_TAGS = ("script", "style", "noscript", "template", "svg", "head", "iframe")

_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36 ragstream/0.1"
)


async def block_non_text_resources(route: Route) -> None:
    """Abort sub-resource requests that carry no extractable text."""
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


def visible_body_text(html: str) -> str:
    """Return the text a reader would see in ``<body>``, one block per line."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_INVISIBLE_TAGS):
        tag.decompose()
    root = soup.body or soup
    return root.get_text(separator="\n", strip=True)


@dataclass(frozen=True)
class ParsedPage:
    """Readable content of one rendered page."""

    title: str
    text: str
    used_fallback: bool


def parse_page(html: str, min_length: int) -> ParsedPage:
    """Isolate the article text and title from *html* in one trafilatura pass.

    The body-text fallback applies when trafilatura finds no article or
    one shorter than *min_length*, and only if the body text is longer.
    CPU-bound; callers off the event loop run it in a thread.
    """
    extracted = trafilatura.extract(
        html,
        output_format="json",
        with_metadata=True,
        include_comments=False,
        include_tables=True,
    )
    document = json.loads(extracted) if extracted else {}
    title = (document.get("title") or "").strip()
    article = (document.get("text") or "").strip()
    if len(article) >= min_length:
        return ParsedPage(title=title, text=article, used_fallback=False)

    body = visible_body_text(html)
    if len(body) > len(article):
        return ParsedPage(title=title, text=body, used_fallback=True)
    return ParsedPage(title=title, text=article, used_fallback=False)


class RenderedPageProvider(IDocumentProvider):
    """Renders a page in headless Chromium and extracts its readable text."""

    def __init__(
        self,
        browser_handle: BrowserHandle,
        page_load_timeout_seconds: float = 60.0,
        min_article_length: int = 200,
    ) -> None:
        self._browser_handle = browser_handle
        self._timeout_ms = page_load_timeout_seconds * 1000
        self._min_article_length = min_article_length

    def supports(self, url: str) -> bool:
        return not has_binary_suffix(url)

    async def extract(self, url: str) -> ExtractedContent:
        html, page_title = await self._render(url)

        try:
            parsed = await asyncio.to_thread(parse_page, html, self._min_article_length)
        except Exception as exc:
            raise ExtractionError(
                message=f"Could not parse rendered page {url}: {exc}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.PARSE,
            ) from exc
        title = parsed.title or page_title.strip() or url

        logger.info(
            "page_extracted",
            url=url,
            title=title,
            text_length=len(parsed.text),
            body_fallback=parsed.used_fallback,
        )
        return ExtractedContent(title=title, text=parsed.text, url=url)

    def get_provider_name(self) -> str:
        return "playwright"

    async def _render(self, url: str) -> tuple[str, str]:
        browser = await self._browser_handle.acquire()
        try:
            context = await browser.new_context(user_agent=_USER_AGENT)
        except PlaywrightError as exc:
            raise ExtractionError(
                message=f"Could not open browser context: {exc}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.BROWSER,
            ) from exc

        try:
            page = await context.new_page()
            await page.route("**/*", block_non_text_resources)
            await page.goto(url, wait_until="networkidle", timeout=self._timeout_ms)
            return await page.content(), await page.title()
        except PlaywrightTimeoutError as exc:
            raise ExtractionError(
                message=f"Timeout rendering {url}: {exc}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.TIMEOUT,
            ) from exc
        except PlaywrightError as exc:
            raise ExtractionError(
                message=f"Error rendering {url}: {exc}",
                provider_name=self.get_provider_name(),
                kind=FailureKind.NETWORK,
            ) from exc
        finally:
            try:
                await context.close()
            except PlaywrightError as exc:
                logger.warning("browser_context_close_failed", url=url, error=str(exc))
