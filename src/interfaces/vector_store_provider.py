"""Abstract base class for the vector store gateway.

The gateway stores every record class (ingest jobs, raw documents, chunks,
chat interactions) keyed by class name and id, and vector-indexes the
records that are created with a vector.  It performs no retries: every
failure surfaces as :class:`~src.utils.errors.StoreError` and the caller
decides whether it is fatal.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StoredObject:
    """A record read back from the store.

    Attributes
    ----------
    class_name:
        Record class, e.g. ``"DocChunk"``.
    object_id:
        The record id.
    properties:
        Stored property dict.
    distance:
        Cosine distance to the query vector; only set by
        :meth:`IVectorStoreProvider.nearest_neighbors`.
    """

    class_name: str
    object_id: str
    properties: dict[str, Any] = field(default_factory=dict)
    distance: float | None = None


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
# Record properties live in SQLite, vectors in a ChromaDB collection per class.
class IVectorStoreProvider(ABC):
    """Contract for the record and vector store used by both pipelines.

    All methods are async and await the store's acknowledgment before
    returning.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/collections if they do not exist.  Idempotent."""

    @abstractmethod
    async def create_object(
        self,
        class_name: str,
        properties: dict[str, Any],
        object_id: str | None = None,
        vector: list[float] | None = None,
    ) -> str:
        """Create one record, optionally vector-indexed.

        Parameters
        ----------
        class_name:
            Record class.
        properties:
            JSON-serializable property dict.
        object_id:
            Caller-supplied id.  Creating again with the same id replaces
            the properties (and vector) instead of duplicating the record,
            which makes re-processing a job idempotent.  A UUID4 is
            generated when omitted.
        vector:
            Embedding to index the record under.  All vectors in the store
            must share one dimension.

        Returns
        -------
        str
            The record id.

        Raises
        ------
        src.utils.errors.StoreError
            On any write failure, timeout or vector dimension mismatch.
        """

    @abstractmethod
    async def update_object(
        self,
        class_name: str,
        object_id: str,
        properties: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge *properties* into an existing record.

        Returns
        -------
        dict
            The merged property dict.

        Raises
        ------
        src.utils.errors.StoreError
            If no record with *object_id* exists in *class_name*, or on any
            write failure.
        """

    @abstractmethod
    async def get_object(self, class_name: str, object_id: str) -> StoredObject | None:
        """Return the record, or ``None`` if it does not exist."""

    @abstractmethod
    async def list_objects(
        self,
        class_name: str,
        where: dict[str, Any] | None = None,
    ) -> list[StoredObject]:
        """Return records of *class_name* in insertion order.

        *where* is an equality filter on top-level properties,
        e.g. ``{"status": "pending"}``.
        """

    @abstractmethod
    async def nearest_neighbors(
        self,
        vector: list[float],
        k: int,
        class_name: str = "DocChunk",
    ) -> list[StoredObject]:
        """Return up to *k* vector-indexed records closest to *vector*.

        Ordered by ascending cosine distance; ties keep insertion order.
        An empty store yields an empty list, not an error.

        Raises
        ------
        src.utils.errors.StoreError
            If the search fails or times out.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release client resources."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""
