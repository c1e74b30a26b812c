"""FastAPI route definitions for the ragstream HTTP API.

All endpoints live under the ``/api`` prefix.  Service instances are
built once in :mod:`src.main` and read from ``request.app.state`` through
small dependency helpers, so tests can swap any of them for a mock.

Endpoints
---------
POST /api/ingest             Accept a URL for background ingestion (202).
GET  /api/ingest/{job_id}    Current status of an ingestion job.
POST /api/chat               Stream a grounded answer as server-sent events.
GET  /api/health             Provider availability and queue depth.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from src.api.schemas import (
    ChatRequest,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    JobStatusResponse,
)
from src.api.streaming import sse_response
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.services.ingestion.job_coordinator import SUBMITTED_MESSAGE, JobCoordinator
from src.services.ingestion.job_queue import IngestionQueue
from src.services.qa_service import QAService
from src.utils.errors import InputValidationError

logger = structlog.get_logger(logger_name=__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_job_coordinator(request: Request) -> JobCoordinator:
    return request.app.state.job_coordinator


def _get_qa_service(request: Request) -> QAService:
    return request.app.state.qa_service


def _get_embedding_provider(request: Request) -> IEmbeddingProvider:
    return request.app.state.embedding_provider


def _get_llm_provider(request: Request) -> ILLMProvider:
    return request.app.state.llm_provider


def _get_ingestion_queue(request: Request) -> IngestionQueue:
    return request.app.state.ingestion_queue


CoordinatorDep = Annotated[JobCoordinator, Depends(_get_job_coordinator)]
QAServiceDep = Annotated[QAService, Depends(_get_qa_service)]
EmbeddingDep = Annotated[IEmbeddingProvider, Depends(_get_embedding_provider)]
LLMDep = Annotated[ILLMProvider, Depends(_get_llm_provider)]
QueueDep = Annotated[IngestionQueue, Depends(_get_ingestion_queue)]


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a URL for ingestion",
)
async def submit_ingestion(
    body: IngestRequest,
    coordinator: CoordinatorDep,
) -> IngestResponse:
    """Create a pending job and return its id.  Processing happens later."""
    try:
        job_id = await coordinator.submit(body.url)
    except InputValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.public_message,
        ) from exc
    return IngestResponse(job_id=job_id, message=SUBMITTED_MESSAGE)


@router.get(
    "/ingest/{job_id}",
    response_model=JobStatusResponse,
    summary="Get ingestion job status",
)
async def get_ingestion_job(job_id: str, coordinator: CoordinatorDep) -> JobStatusResponse:
    job = await coordinator.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobStatusResponse.from_job(job)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_class=StreamingResponse,
    summary="Ask a question and stream the grounded answer",
)
async def chat(
    body: ChatRequest,
    request: Request,
    qa_service: QAServiceDep,
) -> StreamingResponse:
    """Stream ``data: <event json>`` frames until exactly one terminal event."""
    events = qa_service.stream_answer(body.query, body.session_id)
    return sse_response(events, request.is_disconnected)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(
    embedding_provider: EmbeddingDep,
    llm_provider: LLMDep,
    queue: QueueDep,
) -> HealthResponse:
    providers = {
        embedding_provider.get_provider_name(): embedding_provider.is_available(),
        llm_provider.get_provider_name(): llm_provider.is_available(),
    }
    overall = "healthy" if all(providers.values()) else "degraded"
    return HealthResponse(
        status=overall,
        providers=providers,
        queue={
            "pending": queue.pending,
            "workers": queue.concurrency if queue.running else 0,
        },
    )
