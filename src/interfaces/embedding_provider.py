"""Abstract base class for text-embedding service providers.

Defines the contract for turning chunk texts and user queries into
fixed-dimension vectors.  The ingestion pipeline zips texts to vectors
positionally, so implementations must either return one vector per input
in input order or fail the whole call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (src/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by ingestion and query.

    Vectors produced here are stored and searched through
    :class:`~src.interfaces.vector_store_provider.IVectorStoreProvider`.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Texts to embed.  An empty list returns an empty list without
            contacting the remote service.

        Returns
        -------
        list[list[float]]
            Exactly ``len(texts)`` vectors, positionally aligned with
            *texts*, each of length :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If credentials are missing (checked before any network call),
            the remote call fails, or the response count does not match the
            input count.  No partial result is ever returned.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for one text (typically a query).

        Raises
        ------
        src.utils.errors.EmbeddingError
            Under the same conditions as :meth:`embed`.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the vectors this provider produces.

        Constant for the lifetime of the provider; every vector in the store
        must share it.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai-text-embedding-3-small"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured.  Makes no network call."""
