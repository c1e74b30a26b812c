"""ragstream domain models.

    - rag.py     -- stored records (IngestJob, RawDocument, DocumentChunk,
                    ChatInteraction) and retrieval results
    - events.py  -- the closed union of chat stream events
"""

from __future__ import annotations

from src.models.events import (
    EmbeddingResultEvent,
    ErrorEvent,
    LLMChunkEvent,
    LLMResponseEvent,
    LLMSourcesEvent,
    RetrievedContextEvent,
    StreamEvent,
    is_terminal,
)
from src.models.rag import (
    ChatInteraction,
    DocumentChunk,
    IngestJob,
    JobStatus,
    RawDocument,
    RetrievedChunk,
    SourceCitation,
    TextSegment,
)

__all__ = [
    "ChatInteraction",
    "DocumentChunk",
    "EmbeddingResultEvent",
    "ErrorEvent",
    "IngestJob",
    "JobStatus",
    "LLMChunkEvent",
    "LLMResponseEvent",
    "LLMSourcesEvent",
    "RawDocument",
    "RetrievedChunk",
    "RetrievedContextEvent",
    "SourceCitation",
    "StreamEvent",
    "TextSegment",
    "is_terminal",
]
