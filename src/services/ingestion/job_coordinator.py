"""Ingestion job coordinator.

Owns the :class:`~src.models.rag.IngestJob` state machine and sequences
the pipeline for each dequeued job:

    extract -> chunk -> store RawDoc -> embed -> store DocChunks

Status transitions are ``pending -> processing -> completed | failed``;
``completed`` and ``failed`` are terminal.  :meth:`JobCoordinator.process_job`
never raises: every failure becomes a ``failed`` job whose
``errorMessage`` is a generic, caller-safe sentence, while the detail goes
to the log.

Nothing is rolled back.  A RawDoc written before embedding fails stays in
the store.  Record ids are derived from the job id, so processing the
same job again overwrites its own records instead of duplicating them, and
a job that is already terminal when dequeued is skipped.
"""

from __future__ import annotations

import uuid

import structlog
from pydantic import HttpUrl, TypeAdapter, ValidationError

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import (
    DOC_CHUNK_CLASS,
    INGEST_JOB_CLASS,
    RAW_DOCUMENT_CLASS,
    DocumentChunk,
    IngestJob,
    JobStatus,
    RawDocument,
    utc_now,
)
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.content_extractor import ContentExtractor
from src.services.ingestion.job_queue import IngestionQueue, IngestWorkItem
from src.utils.errors import (
    ChunkingError,
    EmbeddingError,
    ExtractionError,
    InputValidationError,
    RagStreamError,
    StoreError,
)

logger = structlog.get_logger(logger_name=__name__)

_URL_ADAPTER = TypeAdapter(HttpUrl)

SUBMITTED_MESSAGE = "Ingestion request accepted and job added to queue."


def validate_url(url: str) -> str:
    """Return *url* stripped if it is an absolute http(s) URL.

    Only syntax is checked; reachability is the worker's problem.

    Raises
    ------
    InputValidationError
        If *url* is not a syntactically valid http(s) URL.
    """
    candidate = (url or "").strip()
    try:
        _URL_ADAPTER.validate_python(candidate)
    except ValidationError as exc:
        raise InputValidationError(message=f"Invalid URL: {candidate!r}") from exc
    return candidate


def derive_record_id(job_id: str, name: str) -> str:
    """Deterministic record id for a job's RawDoc or chunk."""
    try:
        namespace = uuid.UUID(job_id)
    except ValueError:
        namespace = uuid.uuid5(uuid.NAMESPACE_URL, job_id)
    return str(uuid.uuid5(namespace, name))


class JobCoordinator:
    """Submits ingestion jobs and runs them to a terminal status.

    Parameters
    ----------
    store:
        Record/vector gateway.
    extractor:
        Two-strategy content extractor.
    chunker:
        Text splitter.
    embedding_provider:
        Batch embedder for chunk texts.
    queue:
        Work queue the workers drain; :meth:`process_job` is its handler.
    """

    def __init__(
        self,
        store: IVectorStoreProvider,
        extractor: ContentExtractor,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        queue: IngestionQueue,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._queue = queue

    # ------------------------------------------------------------------
    # Caller-facing
    # ------------------------------------------------------------------

    async def submit(self, url: str) -> str:
        """Create a pending job for *url*, enqueue it and return its id.

        Raises
        ------
        InputValidationError
            If *url* is malformed.  Nothing is stored.
        StoreError
            If the job record cannot be created.
        """
        url = validate_url(url)
        job = IngestJob(url=url)
        await self._store.create_object(INGEST_JOB_CLASS, job.to_properties(), object_id=job.job_id)
        await self._queue.enqueue(IngestWorkItem(job_id=job.job_id, url=url))
        logger.info("ingest_job_submitted", job_id=job.job_id, url=url)
        return job.job_id

    async def get_job(self, job_id: str) -> IngestJob | None:
        stored = await self._store.get_object(INGEST_JOB_CLASS, job_id)
        if stored is None:
            return None
        return IngestJob.from_properties(stored.properties)

    async def recover_pending_jobs(self) -> int:
        """Re-enqueue jobs left ``pending`` by a previous process.

        Jobs stuck in ``processing`` are not touched; there is no automatic
        retry.
        """
        pending = await self._store.list_objects(
            INGEST_JOB_CLASS, where={"status": JobStatus.PENDING.value}
        )
        for stored in pending:
            job = IngestJob.from_properties(stored.properties)
            await self._queue.enqueue(IngestWorkItem(job_id=job.job_id, url=job.url))
        if pending:
            logger.info("ingest_jobs_recovered", count=len(pending))
        return len(pending)

    # ------------------------------------------------------------------
    # Worker-facing transitions
    # ------------------------------------------------------------------

    async def mark_processing(self, job_id: str) -> None:
        await self._store.update_object(
            INGEST_JOB_CLASS, job_id, {"status": JobStatus.PROCESSING.value}
        )

    async def mark_completed(self, job_id: str) -> None:
        await self._store.update_object(
            INGEST_JOB_CLASS,
            job_id,
            {
                "status": JobStatus.COMPLETED.value,
                "completedAt": utc_now().isoformat(),
                "errorMessage": None,
            },
        )

    async def mark_failed(self, job_id: str, error_message: str) -> None:
        await self._store.update_object(
            INGEST_JOB_CLASS,
            job_id,
            {
                "status": JobStatus.FAILED.value,
                "completedAt": utc_now().isoformat(),
                "errorMessage": error_message,
            },
        )

    async def process_job(self, item: IngestWorkItem) -> JobStatus:
        """Run one dequeued job to a terminal status.  Never raises."""
        log = logger.bind(job_id=item.job_id, url=item.url)

        try:
            existing = await self.get_job(item.job_id)
            if existing is not None and existing.status.is_terminal:
                log.info("ingest_job_already_terminal", status=existing.status.value)
                return existing.status

            await self.mark_processing(item.job_id)
            log.info("ingest_job_processing")
            chunk_count = await self._run_pipeline(item)
            await self.mark_completed(item.job_id)
        except RagStreamError as exc:
            log.warning(
                "ingest_job_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                kind=exc.kind.value if isinstance(exc, ExtractionError) else None,
            )
            await self._record_failure(item.job_id, exc.public_message)
            return JobStatus.FAILED
        except Exception:
            log.exception("ingest_job_crashed")
            await self._record_failure(item.job_id, RagStreamError.public_message)
            return JobStatus.FAILED

        log.info("ingest_job_completed", chunk_count=chunk_count)
        return JobStatus.COMPLETED

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_pipeline(self, item: IngestWorkItem) -> int:
        content = await self._extractor.extract(item.url)

        segments = self._chunker.chunk(content.text)
        if not segments:
            raise ChunkingError(
                message=f"No chunks were generated from {len(content.text)} chars of {item.url}"
            )

        document = RawDocument(
            doc_id=derive_record_id(item.job_id, "raw-doc"),
            job_id=item.job_id,
            source_url=item.url,
            title=content.title,
        )
        await self._store.create_object(
            RAW_DOCUMENT_CLASS, document.to_properties(), object_id=document.doc_id
        )

        vectors = await self._embedding_provider.embed([segment.text for segment in segments])
        if len(vectors) != len(segments):
            raise EmbeddingError(
                message=f"Embedding count mismatch: {len(segments)} chunks, {len(vectors)} vectors",
                provider_name=self._embedding_provider.get_provider_name(),
            )

        # Sequential writes keep the store's insertion order equal to chunk order.
        for segment, vector in zip(segments, vectors, strict=True):
            chunk = DocumentChunk(
                chunk_id=derive_record_id(item.job_id, f"chunk-{segment.index}"),
                doc_id=document.doc_id,
                chunk_index=segment.index,
                text=segment.text,
                source_url=item.url,
                doc_title=document.title,
                page_number=content.page_at(segment.char_start),
            )
            await self._store.create_object(
                DOC_CHUNK_CLASS, chunk.to_properties(), object_id=chunk.chunk_id, vector=vector
            )
        return len(segments)

    async def _record_failure(self, job_id: str, message: str) -> None:
        try:
            await self.mark_failed(job_id, message)
        except StoreError as exc:
            logger.error("ingest_job_mark_failed_error", job_id=job_id, error=str(exc))
