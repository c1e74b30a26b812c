"""Source-document extraction providers.

Two implementations of IDocumentProvider, selected per URL by the
ContentExtractor service:
    1. PDFDocumentProvider -- downloads binary documents with httpx and reads
       their text layer with PyMuPDF.
    2. RenderedPageProvider -- renders web pages in headless Chromium via
       Playwright (shared through a BrowserHandle) and isolates the article
       text with trafilatura, falling back to BeautifulSoup body text.
"""

from src.providers.document.browser_handle import BrowserHandle, BrowserState
from src.providers.document.pdf_provider import PDFDocumentProvider
from src.providers.document.rendered_page_provider import RenderedPageProvider

__all__ = ["BrowserHandle", "BrowserState", "PDFDocumentProvider", "RenderedPageProvider"]
