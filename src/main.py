"""ragstream FastAPI application entry point.

Wires together all providers and services, stores them on ``app.state``
for the route dependencies, and owns their lifecycle: the record store is
opened and the ingestion workers started on startup, and everything is
closed in reverse order on shutdown.

Run with ``python -m src.main`` or ``uvicorn src.main:app``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.settings import Settings
from src.providers.document import (
    BrowserHandle,
    PDFDocumentProvider,
    RenderedPageProvider,
)
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.content_extractor import ContentExtractor
from src.services.ingestion.job_coordinator import JobCoordinator
from src.services.ingestion.job_queue import IngestionQueue
from src.services.qa_service import QAService
from src.utils.logging import configure_logging

APP_VERSION = "0.1.0"

settings = Settings()
configure_logging(
    log_level=settings.log_level,
    json_output=settings.is_production(),
    app_env=settings.app_env,
)

_logger: structlog.BoundLogger = structlog.get_logger(logger_name=__name__)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    Nothing here touches the network; connections open in the lifespan.
    """
    # -- Model providers --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    llm_provider = OpenAILLMProvider(settings=app_settings)

    # -- Record and vector store --
    store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        records_db_path=app_settings.records_db_path,
        collection_prefix=app_settings.chromadb_collection_prefix,
        dimension=embedding_provider.get_dimension(),
        timeout_seconds=app_settings.store_timeout_seconds,
    )

    # -- Extraction strategies --
    browser_handle = BrowserHandle(headless=app_settings.browser_headless)
    pdf_provider = PDFDocumentProvider(timeout_seconds=app_settings.fetch_timeout_seconds)
    page_provider = RenderedPageProvider(
        browser_handle,
        page_load_timeout_seconds=app_settings.page_load_timeout_seconds,
    )
    extractor = ContentExtractor(
        binary_provider=pdf_provider,
        page_provider=page_provider,
        min_content_length=app_settings.min_content_length,
    )

    # -- Services --
    chunker = TextChunker(
        max_chunk_size=app_settings.max_chunk_size,
        overlap=app_settings.chunk_overlap,
    )
    ingestion_queue = IngestionQueue(concurrency=app_settings.ingest_worker_concurrency)
    job_coordinator = JobCoordinator(
        store=store,
        extractor=extractor,
        chunker=chunker,
        embedding_provider=embedding_provider,
        queue=ingestion_queue,
    )
    qa_service = QAService(
        embedding_provider=embedding_provider,
        store=store,
        llm_provider=llm_provider,
        retrieval_k=app_settings.retrieval_k,
        temperature=app_settings.llm_temperature,
        max_tokens=app_settings.llm_max_tokens,
    )

    return {
        "settings": app_settings,
        "embedding_provider": embedding_provider,
        "llm_provider": llm_provider,
        "store": store,
        "browser_handle": browser_handle,
        "pdf_provider": pdf_provider,
        "ingestion_queue": ingestion_queue,
        "job_coordinator": job_coordinator,
        "qa_service": qa_service,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Open the store, start workers and recover pending jobs; undo on exit."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    store: ChromaDBProvider = components["store"]
    queue: IngestionQueue = components["ingestion_queue"]
    coordinator: JobCoordinator = components["job_coordinator"]

    await store.initialize()
    queue.start(coordinator.process_job)
    recovered = await coordinator.recover_pending_jobs()

    _logger.info(
        "app_startup",
        version=APP_VERSION,
        environment=settings.app_env,
        embedding=components["embedding_provider"].get_provider_name(),
        llm=components["llm_provider"].get_provider_name(),
        recovered_jobs=recovered,
    )

    yield

    # -- Shutdown: workers first so nothing writes to a closed store --
    await queue.stop()
    await components["browser_handle"].close()
    await components["pdf_provider"].close()
    await store.close()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="ragstream API",
        version=APP_VERSION,
        description=(
            "Ingest web pages and PDFs into a vector store, then ask questions "
            "and receive grounded answers with citations as a server-sent "
            "event stream."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.cors_origins)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
