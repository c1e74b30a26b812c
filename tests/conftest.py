"""Shared pytest fixtures for the ragstream test suite."""

from __future__ import annotations

import itertools
import math
import uuid
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider, StoredObject
from src.utils.errors import StoreError


# ---------------------------------------------------------------------------
# In-memory gateway
# ---------------------------------------------------------------------------


class InMemoryStore(IVectorStoreProvider):
    """Dict-backed gateway with the same ordering rules as ChromaDBProvider.

    ``fail_on`` holds ``(operation, class_name)`` pairs that raise
    :class:`StoreError`, e.g. ``("create", "ChatInteraction")``.
    """

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], dict[str, Any]] = {}
        self.vectors: dict[tuple[str, str], list[float]] = {}
        self.seq: dict[tuple[str, str], int] = {}
        self.fail_on: set[tuple[str, str]] = set()
        self._counter = itertools.count(1)

    def _maybe_fail(self, operation: str, class_name: str) -> None:
        if (operation, class_name) in self.fail_on:
            raise StoreError(message=f"{operation} {class_name} failed", provider_name="memory")

    async def initialize(self) -> None:
        return None

    async def create_object(self, class_name, properties, object_id=None, vector=None) -> str:
        self._maybe_fail("create", class_name)
        object_id = object_id or str(uuid.uuid4())
        key = (class_name, object_id)
        self.records[key] = dict(properties)
        self.seq.setdefault(key, next(self._counter))
        if vector is not None:
            self.vectors[key] = list(vector)
        return object_id

    async def update_object(self, class_name, object_id, properties) -> dict[str, Any]:
        self._maybe_fail("update", class_name)
        key = (class_name, object_id)
        if key not in self.records:
            raise StoreError(message=f"{class_name} {object_id} does not exist")
        self.records[key] = {**self.records[key], **properties}
        return self.records[key]

    async def get_object(self, class_name, object_id) -> StoredObject | None:
        props = self.records.get((class_name, object_id))
        if props is None:
            return None
        return StoredObject(class_name=class_name, object_id=object_id, properties=dict(props))

    async def list_objects(self, class_name, where=None) -> list[StoredObject]:
        keys = sorted((k for k in self.records if k[0] == class_name), key=self.seq.__getitem__)
        objects = [
            StoredObject(class_name=class_name, object_id=k[1], properties=dict(self.records[k]))
            for k in keys
        ]
        if where:
            objects = [
                o for o in objects if all(o.properties.get(f) == v for f, v in where.items())
            ]
        return objects

    async def nearest_neighbors(self, vector, k, class_name="DocChunk") -> list[StoredObject]:
        self._maybe_fail("search", class_name)
        if k <= 0:
            return []
        scored = [
            (_cosine_distance(vector, vec), self.seq[key], key)
            for key, vec in self.vectors.items()
            if key[0] == class_name
        ]
        scored.sort(key=lambda item: (item[0], item[1]))
        return [
            StoredObject(
                class_name=class_name,
                object_id=key[1],
                properties=dict(self.records[key]),
                distance=distance,
            )
            for distance, _seq, key in scored[:k]
        ]

    async def close(self) -> None:
        return None

    def get_provider_name(self) -> str:
        return "memory"

    def count(self, class_name: str) -> int:
        return sum(1 for key in self.records if key[0] == class_name)

    def of_class(self, class_name: str) -> list[dict[str, Any]]:
        keys = sorted((k for k in self.records if k[0] == class_name), key=self.seq.__getitem__)
        return [self.records[k] for k in keys]


def _cosine_distance(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 1.0
    return 1.0 - dot / norm


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from any local ``.env`` and environment key."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        openai_base_url="",
        chromadb_persist_dir=str(tmp_path / "chroma"),
        records_db_path=str(tmp_path / "records.db"),
    )


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def mock_embedding_provider() -> MagicMock:
    """Embedding provider mock returning one 4-dim vector per input text."""
    mock = MagicMock(spec=IEmbeddingProvider)

    async def _embed(texts: list[str]) -> list[list[float]]:
        return [[1.0, float(i), 0.0, 0.5] for i, _ in enumerate(texts)]

    mock.embed = AsyncMock(side_effect=_embed)
    mock.embed_single = AsyncMock(return_value=[1.0, 0.0, 0.0, 0.5])
    mock.get_dimension.return_value = 4
    mock.get_provider_name.return_value = "mock_embedding"
    mock.is_available.return_value = True
    return mock


def make_llm_stream(*fragments: str, error: Exception | None = None):
    """Build an ``ILLMProvider.stream`` replacement yielding *fragments*.

    The returned function records whether each generator it produced was
    closed via ``closed_flags``.
    """
    closed_flags: list[bool] = []

    def _stream(system_prompt, user_prompt, temperature=0.3, max_tokens=1024):
        index = len(closed_flags)
        closed_flags.append(False)

        async def _gen():
            try:
                for fragment in fragments:
                    yield fragment
                if error is not None:
                    raise error
            finally:
                closed_flags[index] = True

        return _gen()

    _stream.closed_flags = closed_flags  # type: ignore[attr-defined]
    return _stream


@pytest.fixture
def mock_llm_provider() -> MagicMock:
    mock = MagicMock(spec=ILLMProvider)
    mock.stream = MagicMock(side_effect=make_llm_stream("Hello", " world"))
    mock.get_provider_name.return_value = "mock_llm"
    mock.is_available.return_value = True
    return mock


@pytest.fixture
def mock_vector_store() -> MagicMock:
    mock = MagicMock(spec=IVectorStoreProvider)

    async def _create(class_name, properties, object_id=None, vector=None):
        return object_id or "generated-id"

    mock.create_object = AsyncMock(side_effect=_create)
    mock.update_object = AsyncMock(return_value={})
    mock.get_object = AsyncMock(return_value=None)
    mock.list_objects = AsyncMock(return_value=[])
    mock.nearest_neighbors = AsyncMock(return_value=[])
    mock.get_provider_name.return_value = "mock_store"
    return mock


@pytest.fixture
def llm_stream_factory():
    """Return :func:`make_llm_stream` for tests that script the model output."""
    return make_llm_stream
