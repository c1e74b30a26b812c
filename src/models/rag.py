"""Record models for the knowledge base.

Every record that reaches the vector store gateway is one of these frozen
pydantic models.  Field names are snake_case in Python and camelCase on
the wire and in stored properties (``job_id`` -> ``jobId``), produced by
the shared alias generator so the two spellings cannot drift apart.

Relationships:

    IngestJob 1 --- 0..1 RawDocument 1 --- * DocumentChunk
    DocumentChunk * --- * ChatInteraction (via citation_chunk_ids)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Record class names used as the gateway's ``class_name`` argument.
INGEST_JOB_CLASS = "IngestJob"
RAW_DOCUMENT_CLASS = "RawDoc"
DOC_CHUNK_CLASS = "DocChunk"
CHAT_INTERACTION_CLASS = "ChatInteraction"

DEFAULT_TITLE = "Untitled Document"


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_properties(self) -> dict[str, Any]:
        """Return the JSON-safe camelCase property dict stored by the gateway."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_properties(cls, properties: dict[str, Any]):
        return cls.model_validate(properties)


# ---------------------------------------------------------------------------
# Ingestion records
# ---------------------------------------------------------------------------

class JobStatus(str, Enum):  # noqa: UP042
    """Lifecycle of an ingestion job.  COMPLETED and FAILED are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class IngestJob(_Record):
    """One submitted URL and its processing state."""

    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    url: str
    status: JobStatus = JobStatus.PENDING
    queued_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    error_message: str | None = None


class RawDocument(_Record):
    """The extracted source document for a completed extraction."""

    doc_id: str
    job_id: str
    source_url: str
    title: str
    created_at: datetime = Field(default_factory=utc_now)


class TextSegment(BaseModel):
    """A chunker output slice of the normalized document text.

    ``text == source[char_start:char_end]`` always holds, so overlap between
    neighbours can be collapsed exactly from the offsets.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    text: str
    char_start: int = Field(ge=0)
    char_end: int = Field(ge=0)


class DocumentChunk(_Record):
    """A stored, vector-indexed chunk.  The vector lives in the index, not here."""

    chunk_id: str
    doc_id: str
    chunk_index: int = Field(ge=0)
    text: str
    source_url: str
    doc_title: str
    page_number: int | None = None
    created_at: datetime = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Query records
# ---------------------------------------------------------------------------

class RetrievedChunk(_Record):
    """A chunk returned by nearest-neighbor search, with its cosine distance."""

    chunk_id: str
    text: str
    source_url: str
    doc_title: str
    page_number: int | None = None
    distance: float = 0.0


class SourceCitation(_Record):
    """Citation sent to the caller once an answer has streamed."""

    id: str
    title: str
    url: str
    page_number: int | None = None

    @classmethod
    def from_chunk(cls, chunk: RetrievedChunk) -> SourceCitation:
        return cls(
            id=chunk.chunk_id,
            title=chunk.doc_title,
            url=chunk.source_url,
            page_number=chunk.page_number,
        )


class ChatInteraction(_Record):
    """An answered, grounded query.  Immutable once written."""

    chat_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str | None = None
    prompt: str
    answer: str
    citation_chunk_ids: list[str] = Field(default_factory=list)
    asked_at: datetime = Field(default_factory=utc_now)
