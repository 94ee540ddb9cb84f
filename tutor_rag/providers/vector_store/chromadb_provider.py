"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement
:class:`IVectorStoreProvider`.  Uses cosine distance; all vectors are
pre-computed by an :class:`IEmbeddingProvider` and passed in explicitly.
"""

from __future__ import annotations

import os
from typing import Any

# Must be set before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from tutor_rag.interfaces.vector_store_provider import IVectorStoreProvider
from tutor_rag.models.rag import CorpusStats, VectorHit, VectorRecord
from tutor_rag.providers.vector_store.filters import to_chroma_where
from tutor_rag.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Keeps ChromaDB from loading its default ONNX model.

    Every record arrives with its vector, so this is never called.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "tutor_rag uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store backed by a ChromaDB collection with local persistence.

    Parameters
    ----------
    persist_directory:
        Directory for ChromaDB's on-disk data.
    collection_name:
        Collection to open or create.  Course chunks and conversation
        memory live in separate collections.
    dimension:
        Expected vector length.  When set, a collection holding vectors of
        another length is rejected at startup and mismatched upserts fail.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "course_embeddings",
        dimension: int | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._dimension = dimension
        try:
            self._client = chromadb.PersistentClient(
                path=persist_directory,
                settings=chromadb.config.Settings(anonymized_telemetry=False),
            )
            # Collections created by other tools may carry a different
            # persisted embedding function; reopen without ours then.
            try:
                self._collection = self._client.get_or_create_collection(
                    name=collection_name,
                    metadata={"hnsw:space": "cosine"},
                    embedding_function=_NoopEmbeddingFunction(),
                )
            except ValueError:
                self._collection = self._client.get_or_create_collection(
                    name=collection_name,
                    metadata={"hnsw:space": "cosine"},
                )
        except Exception as exc:
            raise StoreError(
                message=f"Cannot open ChromaDB collection {collection_name!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._cached_stats: CorpusStats | None = None
        self._cached_stats_count: int = -1

        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self) -> None:
        """Compare one stored vector's length with the expected dimension.

        Adopts the stored dimension when none was given.
        """
        try:
            if self._collection.count() == 0:
                return
            sample = self._collection.peek(limit=1)
        except Exception as exc:
            logger.warning("embedding_dimension_check_skipped", error=str(exc))
            return

        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return

        stored_dim = len(embeddings[0])
        if self._dimension is None:
            self._dimension = stored_dim
            return
        if stored_dim != self._dimension:
            logger.error(
                "embedding_dimension_mismatch",
                collection=self._collection_name,
                stored_dim=stored_dim,
                expected_dim=self._dimension,
            )
            raise StoreError(
                message=(
                    f"Embedding dimension mismatch: collection {self._collection_name!r} "
                    f"holds {stored_dim}-dim vectors but {self._dimension} were expected. "
                    f"Set OPENAI_EMBEDDING_MODEL to the model used to build it."
                ),
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "embedding_dimension_validated",
            collection=self._collection_name,
            dimension=stored_dim,
        )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert_many(self, records: list[VectorRecord], batch_size: int = 500) -> int:
        """Upsert *records* in batches of *batch_size* to bound memory."""
        if not records:
            return 0
        self._check_dimensions(records)
        self._cached_stats = None

        try:
            for start in range(0, len(records), batch_size):
                batch = records[start : start + batch_size]
                self._collection.upsert(
                    ids=[r.record_id for r in batch],
                    embeddings=[r.embedding for r in batch],
                    documents=[r.content for r in batch],
                    metadatas=[dict(r.metadata) for r in batch],
                )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "chromadb_upsert",
            collection=self._collection_name,
            count=len(records),
            batches=(len(records) + batch_size - 1) // batch_size,
        )
        return len(records)

    async def delete_where(self, filters: dict[str, Any]) -> int:
        where = to_chroma_where(filters)
        if where is None:
            raise StoreError(
                message="Refusing to delete without a filter",
                provider_name=self.get_provider_name(),
            )
        self._cached_stats = None
        try:
            existing = self._collection.get(where=where, include=[])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                self._collection.delete(where=where)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_delete_where",
            collection=self._collection_name,
            filters=filters,
            deleted_count=count,
        )
        return count

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        try:
            if not filters:
                return self._collection.count()
            where = to_chroma_where(filters)
            total = 0
            offset = 0
            while True:
                page = self._collection.get(where=where, include=[], limit=_PAGE_SIZE, offset=offset)
                ids = page["ids"] or []
                total += len(ids)
                if len(ids) < _PAGE_SIZE:
                    return total
                offset += _PAGE_SIZE
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def nearest_neighbors(
        self,
        query_vector: list[float],
        k: int,
        num_candidates: int = 200,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        """Cosine search over the collection.

        HNSW search breadth is a collection setting in ChromaDB, so
        *num_candidates* is accepted for interface parity only.
        """
        if k <= 0:
            return []
        if self._dimension is not None and len(query_vector) != self._dimension:
            raise StoreError(
                message=f"Query vector has {len(query_vector)} dims, collection expects {self._dimension}",
                provider_name=self.get_provider_name(),
            )
        try:
            total = self._collection.count()
            if total == 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [query_vector],
                "n_results": min(k, total),
                "include": ["documents", "metadatas", "distances"],
            }
            where = to_chroma_where(filters)
            if where:
                kwargs["where"] = where

            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

        hits = [
            VectorHit(
                record_id=record_id,
                content=doc or "",
                metadata=dict(meta or {}),
                score=max(0.0, min(1.0, 1.0 - float(distance))),
            )
            for record_id, doc, meta, distance in zip(ids, documents, metadatas, distances, strict=True)
        ]
        logger.debug(
            "chromadb_query",
            collection=self._collection_name,
            requested=k,
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def get_records(
        self,
        filters: dict[str, Any],
        limit: int | None = None,
    ) -> list[VectorRecord]:
        try:
            kwargs: dict[str, Any] = {"include": ["documents", "metadatas", "embeddings"]}
            where = to_chroma_where(filters)
            if where:
                kwargs["where"] = where
            if limit is not None:
                kwargs["limit"] = limit
            page = self._collection.get(**kwargs)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = page["ids"] or []
        documents = page["documents"] if page["documents"] is not None else [""] * len(ids)
        metadatas = page["metadatas"] if page["metadatas"] is not None else [{}] * len(ids)
        embeddings = page["embeddings"] if page["embeddings"] is not None else []
        return [
            VectorRecord(
                record_id=record_id,
                content=doc or "",
                embedding=[float(v) for v in vector],
                metadata=dict(meta or {}),
            )
            for record_id, doc, meta, vector in zip(ids, documents, metadatas, embeddings, strict=True)
        ]

    async def get_source_ids(self) -> set[str]:
        stats = await self.get_stats()
        return set(stats.records_by_source)

    async def get_stats(self) -> CorpusStats:
        """Return record counts per source.

        Cached until the next write, or until the collection count changes
        underneath us (another process ingesting).
        """
        try:
            current_count = self._collection.count()
            if self._cached_stats is not None and self._cached_stats_count == current_count:
                return self._cached_stats

            by_source: dict[str, int] = {}
            for offset in range(0, current_count, _PAGE_SIZE):
                page = self._collection.get(include=["metadatas"], limit=_PAGE_SIZE, offset=offset)
                for meta in page["metadatas"] or []:
                    source = (meta or {}).get("source")
                    if source:
                        by_source[source] = by_source.get(source, 0) + 1
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        result = CorpusStats(
            total_records=current_count,
            total_sources=len(by_source),
            records_by_source=dict(sorted(by_source.items())),
        )
        self._cached_stats = result
        self._cached_stats_count = current_count
        return result

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _check_dimensions(self, records: list[VectorRecord]) -> None:
        expected = self._dimension if self._dimension is not None else len(records[0].embedding)
        for record in records:
            if len(record.embedding) != expected:
                raise StoreError(
                    message=(
                        f"Record {record.record_id} has a {len(record.embedding)}-dim vector; "
                        f"collection {self._collection_name!r} holds {expected}-dim vectors"
                    ),
                    provider_name=self.get_provider_name(),
                )
        self._dimension = expected
