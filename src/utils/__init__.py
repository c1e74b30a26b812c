"""Utility modules for ragstream.

- **errors** -- exception hierarchy rooted at RagStreamError; each pipeline
  stage raises its own subclass and carries a caller-safe ``public_message``.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- whitespace and invisible-character cleanup applied
  to extracted document text before chunking.
"""

from src.utils.errors import (
    ChunkingError,
    ConfigurationError,
    EmbeddingError,
    ExtractionError,
    FailureKind,
    GenerationError,
    InputValidationError,
    PersistenceError,
    RagStreamError,
    StoreError,
)
from src.utils.logging import configure_logging, get_logger
from src.utils.text_normalizer import normalize_text

__all__ = [
    "ChunkingError",
    "ConfigurationError",
    "EmbeddingError",
    "ExtractionError",
    "FailureKind",
    "GenerationError",
    "InputValidationError",
    "PersistenceError",
    "RagStreamError",
    "StoreError",
    "configure_logging",
    "get_logger",
    "normalize_text",
]
