"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
A configured ``openai_base_url`` points the client at any OpenAI-compatible
embeddings endpoint.

Batches are atomic: the result is assembled only after every sub-request
succeeded and the vector count and dimension have been checked, so a
caller never zips texts against a partial or misaligned list.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  For models
    missing from the dimension table the dimension is learned from the
    first response and enforced from then on.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url
        self._timeout = openai.Timeout(settings.embedding_timeout_seconds, connect=5.0)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension: int | None = _MODEL_DIMENSIONS.get(self._model)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )
        self._client: openai.AsyncOpenAI | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        # Built lazily so a missing key is reported by embed(), not at startup.
        if self._client is None:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": self._timeout,
                "max_retries": 0,
            }
            if self._base_url:
                client_kwargs["base_url"] = self._base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
        return self._client

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* as one atomic batch.

        Splits into sub-requests of at most 2048 inputs; any sub-request
        failure discards everything gathered so far.
        """
        if not texts:
            return []

        if not self._api_key:
            raise EmbeddingError(
                message="OPENAI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )

        client = self._get_client()
        collected: list[list[float]] = []
        try:
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await client.embeddings.create(input=batch, model=self._model)
                ordered = sorted(response.data, key=lambda item: item.index)
                collected.extend(item.embedding for item in ordered)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if len(collected) != len(texts):
            raise EmbeddingError(
                message=(
                    f"Embedding count mismatch: requested {len(texts)}, "
                    f"received {len(collected)}"
                ),
                provider_name=self.get_provider_name(),
            )

        self._check_dimensions(collected)
        return collected

    async def embed_single(self, text: str) -> list[float]:
        """Embed one query string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension or 0

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    def _check_dimensions(self, vectors: list[list[float]]) -> None:
        expected = self._dimension or len(vectors[0])
        bad = next((len(v) for v in vectors if len(v) != expected), None)
        if bad is not None:
            raise EmbeddingError(
                message=f"Embedding dimension mismatch: expected {expected}, received {bad}",
                provider_name=self.get_provider_name(),
            )
        self._dimension = expected
