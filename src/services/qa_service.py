"""Retrieval-augmented question answering over the ingested knowledge base.

:meth:`QAService.stream_answer` is an async generator of stream events.
Its life cycle:

    validate -> embed query -> nearest-neighbor search
        no hits  -> retrieved_context([]) -> llm_response (fallback), done
        hits     -> retrieved_context -> llm_chunk* -> persist -> llm_sources

Every failure before or during generation ends the stream with one
``error`` event carrying a generic message; details are logged.  Nothing
is persisted for fallback answers, failed generations, or streams the
caller abandoned (closing the generator stops it at the next ``yield``,
before persistence).  A failed interaction write is logged and the
caller still receives its sources.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider, StoredObject
from src.models.events import (
    EmbeddingResultEvent,
    ErrorEvent,
    LLMChunkEvent,
    LLMResponseEvent,
    LLMSourcesEvent,
    RetrievedContextEvent,
    StreamEvent,
)
from src.models.rag import (
    CHAT_INTERACTION_CLASS,
    DEFAULT_TITLE,
    DOC_CHUNK_CLASS,
    ChatInteraction,
    RetrievedChunk,
    SourceCitation,
)
from src.utils.errors import (
    GenerationError,
    InputValidationError,
    PersistenceError,
    RagStreamError,
    StoreError,
)

logger = structlog.get_logger(logger_name=__name__)

MAX_QUERY_LENGTH = 2000
MAX_SESSION_ID_LENGTH = 128

FALLBACK_ANSWER = "I couldn't find any relevant information to answer your question."

EMBEDDING_FAILED_MESSAGE = "Failed to process chat request due to embedding failure."
RETRIEVAL_FAILED_MESSAGE = "Failed to process chat request."
GENERATION_FAILED_MESSAGE = "Failed to generate an answer."

SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer the user's question based ONLY on the "
    "following context. Include citations to the sources used in your answer, for "
    'example: "This is stated in Source 1". If the context does not contain the '
    "answer, state that you cannot answer the question based on the provided "
    "information. Do not use any information outside of the provided context."
)


def validate_query(query: str | None, session_id: str | None = None) -> str:
    """Return the stripped query, or raise :class:`InputValidationError`."""
    cleaned = (query or "").strip()
    if not cleaned:
        raise InputValidationError(message="Query must not be empty.")
    if len(cleaned) > MAX_QUERY_LENGTH:
        raise InputValidationError(
            message=f"Query must be at most {MAX_QUERY_LENGTH} characters."
        )
    if session_id is not None and len(session_id) > MAX_SESSION_ID_LENGTH:
        raise InputValidationError(
            message=f"Session id must be at most {MAX_SESSION_ID_LENGTH} characters."
        )
    return cleaned


def build_grounded_prompt(query: str, context: list[RetrievedChunk]) -> tuple[str, str]:
    """Return ``(system_prompt, user_prompt)`` for *query* over *context*.

    Only the retrieved chunk texts are offered to the model, numbered in
    retrieval order so citations like "Source 2" map back to ``context[1]``.
    """
    formatted = "\n\n---\n\n".join(
        f"Source {number} (ID: {chunk.chunk_id}, title: {chunk.doc_title}):\n{chunk.text}"
        for number, chunk in enumerate(context, start=1)
    )
    user_prompt = f"Context:\n{formatted}\n\n---\n\nQuestion: {query}"
    return SYSTEM_PROMPT, user_prompt


def to_retrieved_chunk(hit: StoredObject) -> RetrievedChunk:
    props = hit.properties
    return RetrievedChunk(
        chunk_id=hit.object_id,
        text=props.get("text", ""),
        source_url=props.get("sourceUrl", ""),
        doc_title=props.get("docTitle") or DEFAULT_TITLE,
        page_number=props.get("pageNumber"),
        distance=hit.distance or 0.0,
    )


class QAService:
    """Answers questions from retrieved chunks, streaming the answer.

    Parameters
    ----------
    embedding_provider:
        Embeds the query.
    store:
        Nearest-neighbor search and interaction persistence.
    llm_provider:
        Streams the grounded answer.
    retrieval_k:
        Number of chunks retrieved per query.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        store: IVectorStoreProvider,
        llm_provider: ILLMProvider,
        retrieval_k: int = 3,
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._store = store
        self._llm = llm_provider
        self._retrieval_k = retrieval_k
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def stream_answer(
        self,
        query: str,
        session_id: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield the event sequence answering *query*."""
        log = logger.bind(session_id=session_id, query_length=len(query or ""))

        try:
            query = validate_query(query, session_id)
        except InputValidationError as exc:
            log.info("qa_query_rejected", reason=exc.message)
            yield ErrorEvent(message=exc.public_message)
            return

        try:
            embedding = await self._embedding_provider.embed_single(query)
        except RagStreamError as exc:
            log.error("qa_embedding_failed", error=str(exc))
            yield ErrorEvent(message=EMBEDDING_FAILED_MESSAGE)
            return
        yield EmbeddingResultEvent(dimension=len(embedding))

        try:
            hits = await self._store.nearest_neighbors(
                embedding, self._retrieval_k, class_name=DOC_CHUNK_CLASS
            )
        except StoreError as exc:
            log.error("qa_retrieval_failed", error=str(exc))
            yield ErrorEvent(message=RETRIEVAL_FAILED_MESSAGE)
            return

        context = [to_retrieved_chunk(hit) for hit in hits]
        yield RetrievedContextEvent(context=context)

        if not context:
            log.info("qa_no_context")
            yield LLMResponseEvent(content=FALLBACK_ANSWER, sources=[])
            return

        system_prompt, user_prompt = build_grounded_prompt(query, context)
        parts: list[str] = []
        try:
            async with aclosing(
                self._llm.stream(
                    system_prompt,
                    user_prompt,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                )
            ) as fragments:
                async for fragment in fragments:
                    parts.append(fragment)
                    yield LLMChunkEvent(content=fragment)
            if not parts:
                raise GenerationError(
                    message="Model returned an empty answer",
                    provider_name=self._llm.get_provider_name(),
                )
        except RagStreamError as exc:
            log.error("qa_generation_failed", error=str(exc), fragments=len(parts))
            yield ErrorEvent(message=GENERATION_FAILED_MESSAGE)
            return

        answer = "".join(parts)
        interaction = ChatInteraction(
            session_id=session_id,
            prompt=query,
            answer=answer,
            citation_chunk_ids=[chunk.chunk_id for chunk in context],
        )
        try:
            await self._persist(interaction)
        except PersistenceError as exc:
            log.error("qa_interaction_not_persisted", chat_id=interaction.chat_id, error=str(exc))

        log.info("qa_answered", answer_length=len(answer), sources=len(context))
        yield LLMSourcesEvent(sources=[SourceCitation.from_chunk(chunk) for chunk in context])

    async def _persist(self, interaction: ChatInteraction) -> None:
        try:
            await self._store.create_object(
                CHAT_INTERACTION_CLASS,
                interaction.to_properties(),
                object_id=interaction.chat_id,
            )
        except StoreError as exc:
            raise PersistenceError(
                message=f"ChatInteraction {interaction.chat_id} write failed: {exc}",
                provider_name=self._store.get_provider_name(),
            ) from exc
