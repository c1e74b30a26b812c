"""Request and response bodies for the HTTP API.

Job and chat payloads use camelCase on the wire (``jobId``,
``sessionId``), produced by the same alias generator as the stored
records.  Request bodies accept either spelling.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.rag import IngestJob, JobStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class IngestRequest(_CamelModel):
    """Body of ``POST /api/ingest``.  URL syntax is checked by the coordinator."""

    url: str


class IngestResponse(_CamelModel):
    job_id: str
    message: str


class JobStatusResponse(_CamelModel):
    """Current state of one ingestion job."""

    job_id: str
    url: str
    status: JobStatus
    queued_at: datetime
    completed_at: datetime | None = None
    error_message: str | None = None

    @classmethod
    def from_job(cls, job: IngestJob) -> JobStatusResponse:
        return cls.model_validate(job.model_dump())


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(_CamelModel):
    """Body of ``POST /api/chat``.

    Both fields are accepted loosely here; length and emptiness rules are
    applied by the QA service, which reports violations as an ``error``
    event on the stream.
    """

    query: str = ""
    session_id: str | None = None


# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Sanitized error body.  Internals stay in the server log."""

    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    """Health check result with per-component availability."""

    status: str = "healthy"
    version: str = "0.1.0"
    providers: dict[str, bool] = Field(default_factory=dict)
    queue: dict[str, int] = Field(default_factory=dict)
