"""Exception hierarchy for the ingestion and query pipelines.

All application exceptions inherit from :class:`RagStreamError`, which
carries an optional ``provider_name`` naming the external collaborator
(e.g. "openai", "chromadb", "playwright") that caused the failure.

    RagStreamError  (base)
    +-- InputValidationError  (malformed input, rejected before any work)
    +-- ExtractionError       (fetch / render / parse of a source URL)
    +-- ChunkingError         (splitter produced nothing usable)
    +-- EmbeddingError        (credential, API failure, count mismatch)
    +-- StoreError            (record create / update / search)
    +-- GenerationError       (streamed completion failed)
    +-- PersistenceError      (chat interaction write after delivery)
    +-- ConfigurationError    (missing or inconsistent settings)

Each class also exposes ``public_message``: the text that may be shown to
an API caller or written into a job's ``errorMessage``.  The detailed
``message`` stays in the logs.
"""

from enum import Enum


class RagStreamError(Exception):
    """Base exception for all pipeline errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[openai] Embedding request timed out``.
    """

    public_message = "An unexpected error occurred."

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class InputValidationError(RagStreamError):
    """Raised when caller input is malformed (bad URL, empty query)."""

    public_message = "The request was invalid."

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

    @property
    def public_message(self) -> str:  # type: ignore[override]
        # Validation messages describe the caller's own input, so they are safe to echo.
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class FailureKind(str, Enum):  # noqa: UP042
    """Why a content extraction attempt failed."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    EMPTY_CONTENT = "empty_content"
    PARSE = "parse"
    BROWSER = "browser"


_EXTRACTION_PUBLIC_MESSAGES = {
    FailureKind.TIMEOUT: "Timed out while fetching the document.",
}


class ExtractionError(RagStreamError):
    """Raised when a source URL cannot be fetched, rendered or parsed."""

    def __init__(
        self,
        message: str = "Content extraction failed",
        provider_name: str | None = None,
        kind: FailureKind = FailureKind.NETWORK,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._kind = kind

    @property
    def kind(self) -> FailureKind:
        return self._kind

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return _EXTRACTION_PUBLIC_MESSAGES.get(
            self._kind, "No content could be cleaned or fetched."
        )


class ChunkingError(RagStreamError):
    """Raised when extracted text yields no chunks."""

    public_message = "No chunks were generated from the content."

    def __init__(
        self,
        message: str = "No chunks were generated",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(RagStreamError):
    """Raised when a batch or query embedding cannot be produced.

    Batches fail as a whole: callers never receive partial results.
    """

    public_message = "Failed to generate embeddings or embedding count mismatch."

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class StoreError(RagStreamError):
    """Raised when a record create, update or nearest-neighbor search fails."""

    public_message = "The knowledge base could not be reached."

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(RagStreamError):
    """Raised when a chat interaction cannot be written after delivery."""

    public_message = "The conversation could not be saved."

    def __init__(
        self,
        message: str = "Failed to persist chat interaction",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Generation / configuration errors
# ---------------------------------------------------------------------------

class GenerationError(RagStreamError):
    """Raised when the language model fails before or during streaming."""

    public_message = "Failed to generate an answer."

    def __init__(
        self,
        message: str = "LLM generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RagStreamError):
    """Raised when required configuration (e.g. an API key) is missing."""

    public_message = "The service is not configured correctly."

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
