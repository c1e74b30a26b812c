"""Unit tests for the ragstream exception hierarchy."""

from __future__ import annotations

import pytest

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


class TestRagStreamError:
    def test_str_prefixes_provider(self) -> None:
        exc = RagStreamError(message="request timed out", provider_name="openai")
        assert str(exc) == "[openai] request timed out"

    def test_str_without_provider(self) -> None:
        assert str(RagStreamError(message="plain")) == "plain"

    @pytest.mark.parametrize(
        "cls",
        [
            InputValidationError,
            ExtractionError,
            ChunkingError,
            EmbeddingError,
            StoreError,
            PersistenceError,
            GenerationError,
            ConfigurationError,
        ],
    )
    def test_subclasses_share_base(self, cls: type[RagStreamError]) -> None:
        exc = cls(message="detail")
        assert isinstance(exc, RagStreamError)
        assert exc.message == "detail"


class TestPublicMessages:
    def test_detail_is_not_exposed(self) -> None:
        exc = EmbeddingError(message="401 invalid key sk-abc", provider_name="openai")
        assert "sk-abc" not in exc.public_message
        assert exc.public_message == "Failed to generate embeddings or embedding count mismatch."

    def test_chunking_message(self) -> None:
        assert ChunkingError().public_message == "No chunks were generated from the content."

    def test_input_validation_echoes_message(self) -> None:
        assert InputValidationError(message="Query must not be empty.").public_message == (
            "Query must not be empty."
        )

    def test_extraction_timeout_message(self) -> None:
        exc = ExtractionError(message="x", kind=FailureKind.TIMEOUT)
        assert exc.kind is FailureKind.TIMEOUT
        assert exc.public_message == "Timed out while fetching the document."

    @pytest.mark.parametrize(
        "kind",
        [FailureKind.NETWORK, FailureKind.EMPTY_CONTENT, FailureKind.PARSE, FailureKind.BROWSER],
    )
    def test_extraction_other_kinds_share_message(self, kind: FailureKind) -> None:
        exc = ExtractionError(message="x", kind=kind)
        assert exc.public_message == "No content could be cleaned or fetched."

    def test_extraction_default_kind_is_network(self) -> None:
        assert ExtractionError().kind is FailureKind.NETWORK
