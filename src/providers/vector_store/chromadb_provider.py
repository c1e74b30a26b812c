"""ChromaDB + SQLite vector store gateway.

Implements :class:`IVectorStoreProvider` with two local stores:

* an ``aiosqlite`` table holding the properties of every record of every
  class, with an autoincrement ``seq`` that records insertion order;
* one ``chromadb.PersistentClient`` collection per record class (cosine
  space) holding the vectors of the records created with one.

Nearest-neighbor search asks ChromaDB for candidates, orders them by
``(distance, seq)`` so equal distances keep insertion order, and joins the
properties back from SQLite.  Every operation is bounded by
``timeout_seconds`` and wrapped into :class:`StoreError`; nothing is
retried here.
"""

from __future__ import annotations

import asyncio
import json
import os
import uuid
from pathlib import Path
from typing import Any

# Disable ChromaDB's PostHog telemetry before chromadb is imported; the
# client Settings flag below is the authoritative switch.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import aiosqlite
import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider, StoredObject
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

# Extra candidates fetched beyond k so ties at the cut-off can be ordered
# by insertion sequence.  The window doubles while the k-th candidate still
# ties with the farthest one fetched.
_CANDIDATE_MULTIPLIER = 4

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS objects (
    seq         INTEGER PRIMARY KEY AUTOINCREMENT,
    class_name  TEXT    NOT NULL,
    object_id   TEXT    NOT NULL,
    properties  TEXT    NOT NULL,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(class_name, object_id)
);
"""

_CREATE_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_objects_class ON objects(class_name, seq);"

_UPSERT_SQL = """\
INSERT INTO objects (class_name, object_id, properties)
VALUES (?, ?, ?)
ON CONFLICT(class_name, object_id)
DO UPDATE SET properties = excluded.properties,
              updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_SQL = """\
SELECT seq, object_id, properties FROM objects
WHERE class_name = ? AND object_id = ?;
"""

_UPDATE_SQL = """\
UPDATE objects
SET properties = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE class_name = ? AND object_id = ?;
"""

_LIST_SQL = "SELECT seq, object_id, properties FROM objects WHERE class_name = ? ORDER BY seq;"


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Keeps ChromaDB from loading its default ONNX model.

    Vectors are always supplied by the embedding provider.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("ragstream passes pre-computed embeddings to ChromaDB")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Record and vector store backed by SQLite and ChromaDB.

    Parameters
    ----------
    persist_directory:
        ChromaDB data directory.
    records_db_path:
        SQLite file holding record properties.
    collection_prefix:
        Prefix for per-class collection names (``<prefix>_docchunk``).
    dimension:
        Expected vector dimension.  When ``None`` it is learned from the
        first stored vector.
    timeout_seconds:
        Upper bound for each gateway call.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        records_db_path: str | Path = "./data/records.db",
        collection_prefix: str = "ragstream",
        dimension: int | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._persist_directory = persist_directory
        self._records_db_path = Path(records_db_path)
        self._collection_prefix = collection_prefix
        self._dimension = dimension or None
        self._timeout = timeout_seconds
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collections: dict[str, Any] = {}
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the SQLite connection and create the record table."""
        if self._db is not None:
            return
        self._records_db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(str(self._records_db_path), timeout=self._timeout)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute(_CREATE_TABLE_SQL)
            await self._db.execute(_CREATE_INDEX_SQL)
            await self._db.commit()
        except Exception as exc:
            raise StoreError(
                message=f"Record store initialization failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "vector_store_initialized",
            records_db=str(self._records_db_path),
            chroma_dir=self._persist_directory,
        )

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
        self._collections.clear()
        logger.info("vector_store_closed")

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def create_object(
        self,
        class_name: str,
        properties: dict[str, Any],
        object_id: str | None = None,
        vector: list[float] | None = None,
    ) -> str:
        object_id = object_id or str(uuid.uuid4())
        if vector is not None:
            self._check_dimension(vector)

        async def _create() -> str:
            db = self._require_db()
            async with self._write_lock:
                await db.execute(_UPSERT_SQL, (class_name, object_id, json.dumps(properties)))
                await db.commit()
                cursor = await db.execute(_SELECT_SQL, (class_name, object_id))
                row = await cursor.fetchone()

            if vector is not None:
                collection = await self._get_collection(class_name)
                await asyncio.to_thread(
                    collection.upsert,
                    ids=[object_id],
                    embeddings=[vector],
                    metadatas=[{"seq": row["seq"]}],
                )
                if self._dimension is None:
                    self._dimension = len(vector)
            return object_id

        await self._bounded(f"create {class_name}", _create())
        logger.debug("store_object_created", class_name=class_name, object_id=object_id, indexed=vector is not None)
        return object_id

    async def update_object(
        self,
        class_name: str,
        object_id: str,
        properties: dict[str, Any],
    ) -> dict[str, Any]:
        async def _update() -> dict[str, Any]:
            db = self._require_db()
            async with self._write_lock:
                cursor = await db.execute(_SELECT_SQL, (class_name, object_id))
                row = await cursor.fetchone()
                if row is None:
                    raise StoreError(
                        message=f"{class_name} {object_id} does not exist",
                        provider_name=self.get_provider_name(),
                    )
                merged = {**json.loads(row["properties"]), **properties}
                await db.execute(_UPDATE_SQL, (json.dumps(merged), class_name, object_id))
                await db.commit()
            return merged

        return await self._bounded(f"update {class_name}", _update())

    async def get_object(self, class_name: str, object_id: str) -> StoredObject | None:
        async def _get() -> StoredObject | None:
            cursor = await self._require_db().execute(_SELECT_SQL, (class_name, object_id))
            row = await cursor.fetchone()
            if row is None:
                return None
            return StoredObject(
                class_name=class_name,
                object_id=row["object_id"],
                properties=json.loads(row["properties"]),
            )

        return await self._bounded(f"get {class_name}", _get())

    async def list_objects(
        self,
        class_name: str,
        where: dict[str, Any] | None = None,
    ) -> list[StoredObject]:
        async def _list() -> list[StoredObject]:
            cursor = await self._require_db().execute(_LIST_SQL, (class_name,))
            rows = await cursor.fetchall()
            objects = [
                StoredObject(
                    class_name=class_name,
                    object_id=row["object_id"],
                    properties=json.loads(row["properties"]),
                )
                for row in rows
            ]
            if where:
                objects = [
                    obj
                    for obj in objects
                    if all(obj.properties.get(key) == value for key, value in where.items())
                ]
            return objects

        return await self._bounded(f"list {class_name}", _list())

    async def nearest_neighbors(
        self,
        vector: list[float],
        k: int,
        class_name: str = "DocChunk",
    ) -> list[StoredObject]:
        if k <= 0:
            return []

        async def _search() -> list[StoredObject]:
            collection = await self._get_collection(class_name)
            count = await asyncio.to_thread(collection.count)
            if count == 0:
                return []
            self._check_dimension(vector)

            n_results = min(count, k * _CANDIDATE_MULTIPLIER)
            while True:
                ranked = await self._query_ranked(collection, vector, n_results)
                if not ranked:
                    return []
                cut_off_tied = len(ranked) >= k and ranked[k - 1][1] >= ranked[-1][1]
                if n_results >= count or len(ranked) < n_results or not cut_off_tied:
                    break
                n_results = min(count, n_results * 2)
                logger.debug(
                    "vector_store_widen_candidates", class_name=class_name, n_results=n_results
                )
            candidates = ranked[:k]

            hits: list[StoredObject] = []
            db = self._require_db()
            for object_id, distance, _meta in candidates:
                cursor = await db.execute(_SELECT_SQL, (class_name, object_id))
                row = await cursor.fetchone()
                if row is None:
                    logger.warning("vector_without_record", class_name=class_name, object_id=object_id)
                    continue
                hits.append(
                    StoredObject(
                        class_name=class_name,
                        object_id=object_id,
                        properties=json.loads(row["properties"]),
                        distance=float(distance),
                    )
                )
            return hits

        hits = await self._bounded(f"search {class_name}", _search())
        logger.info(
            "vector_store_query",
            class_name=class_name,
            k=k,
            results_count=len(hits),
            top_distance=hits[0].distance if hits else None,
        )
        return hits

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _query_ranked(
        collection: Any, vector: list[float], n_results: int
    ) -> list[tuple[str, float, dict]]:
        """Query *n_results* neighbours ordered by (distance, insertion seq)."""
        results = await asyncio.to_thread(
            collection.query,
            query_embeddings=[vector],
            n_results=n_results,
            include=["distances", "metadatas"],
        )
        ids = results["ids"][0] if results["ids"] else []
        distances = results["distances"][0] if results["distances"] else [0.0] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        ranked = [
            (object_id, float(distance), meta or {})
            for object_id, distance, meta in zip(ids, distances, metadatas, strict=True)
        ]
        return sorted(
            ranked,
            key=lambda item: (item[1], item[2].get("seq", 0)),
        )

    def _require_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError(
                message="Record store used before initialize()",
                provider_name=self.get_provider_name(),
            )
        return self._db

    def _check_dimension(self, vector: list[float]) -> None:
        if self._dimension is not None and len(vector) != self._dimension:
            raise StoreError(
                message=f"Vector dimension {len(vector)} does not match store dimension {self._dimension}",
                provider_name=self.get_provider_name(),
            )

    async def _get_collection(self, class_name: str) -> Any:
        collection = self._collections.get(class_name)
        if collection is None:
            collection = await asyncio.to_thread(
                self._open_collection, f"{self._collection_prefix}_{class_name.lower()}"
            )
            self._collections[class_name] = collection
        return collection

    def _open_collection(self, name: str) -> Any:
        try:
            return self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            # Collection persisted with a different embedding function;
            # vectors are always supplied, so open it as persisted.
            return self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )

    async def _bounded(self, operation: str, coro: Any) -> Any:
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except StoreError:
            raise
        except asyncio.TimeoutError as exc:
            raise StoreError(
                message=f"{operation} timed out after {self._timeout}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except Exception as exc:
            raise StoreError(
                message=f"{operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
