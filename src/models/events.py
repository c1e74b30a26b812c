"""Events streamed to a chat caller.

The union is closed: every event the query engine can produce is one of
the classes below, discriminated by its ``type`` literal.  A well-formed
stream is

    embedding_result, retrieved_context, llm_chunk*, <terminal>

where the terminal event is exactly one of ``llm_sources``,
``llm_response`` (no-context fallback) or ``error``.  An ``error`` may
also end the stream early, before the context event.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from src.models.rag import RetrievedChunk, SourceCitation


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class EmbeddingResultEvent(_Event):
    type: Literal["embedding_result"] = "embedding_result"
    success: bool = True
    dimension: int


class RetrievedContextEvent(_Event):
    type: Literal["retrieved_context"] = "retrieved_context"
    context: list[RetrievedChunk] = Field(default_factory=list)


class LLMChunkEvent(_Event):
    type: Literal["llm_chunk"] = "llm_chunk"
    content: str


class LLMSourcesEvent(_Event):
    type: Literal["llm_sources"] = "llm_sources"
    sources: list[SourceCitation] = Field(default_factory=list)


class LLMResponseEvent(_Event):
    """Non-streamed complete answer, used for the no-context fallback."""

    type: Literal["llm_response"] = "llm_response"
    content: str
    sources: list[SourceCitation] = Field(default_factory=list)


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[
    Union[
        EmbeddingResultEvent,
        RetrievedContextEvent,
        LLMChunkEvent,
        LLMSourcesEvent,
        LLMResponseEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

TERMINAL_EVENT_TYPES = frozenset({"llm_sources", "llm_response", "error"})

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def is_terminal(event: _Event) -> bool:
    return getattr(event, "type", None) in TERMINAL_EVENT_TYPES
