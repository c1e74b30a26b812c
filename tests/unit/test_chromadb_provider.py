"""Unit tests for the ChromaDB + SQLite vector store gateway.

Runs against real on-disk stores under ``tmp_path``; no network.
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
import pytest_asyncio

from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.utils.errors import StoreError


@pytest_asyncio.fixture
async def store(tmp_path):
    provider = ChromaDBProvider(
        persist_directory=str(tmp_path / "chroma"),
        records_db_path=tmp_path / "records.db",
        collection_prefix="test",
        dimension=3,
    )
    await provider.initialize()
    yield provider
    await provider.close()


class TestLifecycle:
    def test_get_provider_name(self, tmp_path) -> None:
        provider = ChromaDBProvider(
            persist_directory=str(tmp_path / "chroma"),
            records_db_path=tmp_path / "records.db",
        )
        assert provider.get_provider_name() == "chromadb"

    @pytest.mark.asyncio
    async def test_use_before_initialize_raises(self, tmp_path) -> None:
        provider = ChromaDBProvider(
            persist_directory=str(tmp_path / "chroma"),
            records_db_path=tmp_path / "records.db",
        )
        with pytest.raises(StoreError, match="initialize"):
            await provider.get_object("IngestJob", "missing")

    @pytest.mark.asyncio
    async def test_records_survive_reopen(self, tmp_path) -> None:
        kwargs = {
            "persist_directory": str(tmp_path / "chroma"),
            "records_db_path": tmp_path / "records.db",
        }
        first = ChromaDBProvider(**kwargs)
        await first.initialize()
        await first.create_object("IngestJob", {"status": "pending"}, object_id="job-1")
        await first.close()

        second = ChromaDBProvider(**kwargs)
        await second.initialize()
        stored = await second.get_object("IngestJob", "job-1")
        await second.close()
        assert stored is not None
        assert stored.properties == {"status": "pending"}


class TestRecords:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store: ChromaDBProvider) -> None:
        object_id = await store.create_object("IngestJob", {"url": "https://x.test", "status": "pending"})
        stored = await store.get_object("IngestJob", object_id)
        assert stored is not None
        assert stored.class_name == "IngestJob"
        assert stored.properties["url"] == "https://x.test"
        assert stored.distance is None

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: ChromaDBProvider) -> None:
        assert await store.get_object("IngestJob", "nope") is None

    @pytest.mark.asyncio
    async def test_create_with_same_id_overwrites(self, store: ChromaDBProvider) -> None:
        await store.create_object("RawDoc", {"title": "old"}, object_id="d1")
        await store.create_object("RawDoc", {"title": "new"}, object_id="d1")
        objects = await store.list_objects("RawDoc")
        assert len(objects) == 1
        assert objects[0].properties == {"title": "new"}

    @pytest.mark.asyncio
    async def test_update_merges_properties(self, store: ChromaDBProvider) -> None:
        await store.create_object("IngestJob", {"url": "u", "status": "pending"}, object_id="j")
        merged = await store.update_object("IngestJob", "j", {"status": "completed"})
        assert merged == {"url": "u", "status": "completed"}
        stored = await store.get_object("IngestJob", "j")
        assert stored.properties["status"] == "completed"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: ChromaDBProvider) -> None:
        with pytest.raises(StoreError, match="does not exist"):
            await store.update_object("IngestJob", "ghost", {"status": "failed"})

    @pytest.mark.asyncio
    async def test_list_filters_and_keeps_insertion_order(self, store: ChromaDBProvider) -> None:
        for i, status in enumerate(["pending", "completed", "pending"]):
            await store.create_object("IngestJob", {"status": status}, object_id=f"j{i}")
        pending = await store.list_objects("IngestJob", where={"status": "pending"})
        assert [o.object_id for o in pending] == ["j0", "j2"]

    @pytest.mark.asyncio
    async def test_classes_are_separate(self, store: ChromaDBProvider) -> None:
        await store.create_object("RawDoc", {"x": 1}, object_id="same")
        assert await store.get_object("DocChunk", "same") is None


class TestNearestNeighbors:
    @pytest.mark.asyncio
    async def test_empty_collection_returns_empty(self, store: ChromaDBProvider) -> None:
        assert await store.nearest_neighbors([1.0, 0.0, 0.0], 3) == []

    @pytest.mark.asyncio
    async def test_k_zero_returns_empty(self, store: ChromaDBProvider) -> None:
        await store.create_object("DocChunk", {"text": "a"}, object_id="c1", vector=[1.0, 0.0, 0.0])
        assert await store.nearest_neighbors([1.0, 0.0, 0.0], 0) == []

    @pytest.mark.asyncio
    async def test_orders_by_distance(self, store: ChromaDBProvider) -> None:
        await store.create_object("DocChunk", {"text": "far"}, object_id="far", vector=[0.0, 1.0, 0.0])
        await store.create_object("DocChunk", {"text": "near"}, object_id="near", vector=[1.0, 0.1, 0.0])
        await store.create_object("DocChunk", {"text": "mid"}, object_id="mid", vector=[1.0, 1.0, 0.0])

        hits = await store.nearest_neighbors([1.0, 0.0, 0.0], 2)

        assert [h.object_id for h in hits] == ["near", "mid"]
        assert hits[0].properties == {"text": "near"}
        assert hits[0].distance <= hits[1].distance

    @pytest.mark.asyncio
    async def test_ties_keep_insertion_order(self, store: ChromaDBProvider) -> None:
        for i in range(4):
            await store.create_object(
                "DocChunk", {"chunkIndex": i}, object_id=f"c{i}", vector=[0.5, 0.5, 0.0]
            )
        hits = await store.nearest_neighbors([0.5, 0.5, 0.0], 3)
        assert [h.object_id for h in hits] == ["c0", "c1", "c2"]

    @pytest.mark.asyncio
    async def test_ties_beyond_candidate_window_keep_insertion_order(
        self, store: ChromaDBProvider
    ) -> None:
        for i in range(60):
            await store.create_object(
                "DocChunk", {"chunkIndex": i}, object_id=f"id-{i:02d}", vector=[1.0, 0.0, 0.0]
            )

        hits = await store.nearest_neighbors([1.0, 0.0, 0.0], 3)

        assert [h.object_id for h in hits] == ["id-00", "id-01", "id-02"]

    @pytest.mark.asyncio
    async def test_k_larger_than_collection(self, store: ChromaDBProvider) -> None:
        await store.create_object("DocChunk", {"text": "only"}, object_id="c1", vector=[1.0, 0.0, 0.0])
        hits = await store.nearest_neighbors([1.0, 0.0, 0.0], 10)
        assert len(hits) == 1

    @pytest.mark.asyncio
    async def test_records_without_vectors_are_not_indexed(self, store: ChromaDBProvider) -> None:
        await store.create_object("DocChunk", {"text": "plain"}, object_id="plain")
        assert await store.nearest_neighbors([1.0, 0.0, 0.0], 3) == []

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, store: ChromaDBProvider) -> None:
        with pytest.raises(StoreError, match="dimension"):
            await store.create_object("DocChunk", {"text": "x"}, object_id="c", vector=[1.0, 0.0])


class TestFailureMapping:
    @pytest.mark.asyncio
    async def test_timeout_becomes_store_error(self, tmp_path) -> None:
        provider = ChromaDBProvider(
            persist_directory=str(tmp_path / "chroma"),
            records_db_path=tmp_path / "records.db",
            timeout_seconds=0.01,
        )
        await provider.initialize()

        async def _slow(*args, **kwargs):
            await asyncio.sleep(1)

        try:
            with patch.object(provider, "_get_collection", side_effect=_slow):
                with pytest.raises(StoreError, match="timed out"):
                    await provider.nearest_neighbors([1.0, 0.0, 0.0], 3)
        finally:
            await provider.close()

    @pytest.mark.asyncio
    async def test_backend_exception_becomes_store_error(self, store: ChromaDBProvider) -> None:
        with patch.object(store, "_get_collection", side_effect=RuntimeError("disk gone")):
            with pytest.raises(StoreError, match="disk gone"):
                await store.nearest_neighbors([1.0, 0.0, 0.0], 3)
