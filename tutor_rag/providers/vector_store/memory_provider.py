"""In-process vector store using exact numpy cosine search.

Keeps every record in insertion order and scores the whole matrix per
query.  Fine for tests, notebooks and corpora of a few thousand chunks;
nothing is persisted.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import structlog

from tutor_rag.interfaces.vector_store_provider import IVectorStoreProvider
from tutor_rag.models.rag import CorpusStats, VectorHit, VectorRecord
from tutor_rag.providers.vector_store.filters import matches_filters
from tutor_rag.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryVectorStore(IVectorStoreProvider):
    """Exact cosine-similarity store held in a Python dict.

    Parameters
    ----------
    dimension:
        Expected vector length.  When omitted, the first upsert fixes it.
    name:
        Label used in log events.
    """

    def __init__(self, dimension: int | None = None, name: str = "memory") -> None:
        self._dimension = dimension
        self._name = name
        # dicts preserve insertion order, which doubles as the tie-break order.
        self._records: dict[str, VectorRecord] = {}

    async def upsert_many(self, records: list[VectorRecord]) -> int:
        if not records:
            return 0
        expected = self._dimension if self._dimension is not None else len(records[0].embedding)
        for record in records:
            if len(record.embedding) != expected:
                raise StoreError(
                    message=(
                        f"Record {record.record_id} has a {len(record.embedding)}-dim vector; "
                        f"store {self._name!r} holds {expected}-dim vectors"
                    ),
                    provider_name=self.get_provider_name(),
                )
        self._dimension = expected
        for record in records:
            self._records[record.record_id] = record
        return len(records)

    async def delete_where(self, filters: dict[str, Any]) -> int:
        if not filters:
            raise StoreError(
                message="Refusing to delete without a filter",
                provider_name=self.get_provider_name(),
            )
        doomed = [rid for rid, rec in self._records.items() if matches_filters(rec.metadata, filters)]
        for rid in doomed:
            del self._records[rid]
        logger.info("memory_store_delete_where", store=self._name, filters=filters, deleted_count=len(doomed))
        return len(doomed)

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        if not filters:
            return len(self._records)
        return sum(1 for rec in self._records.values() if matches_filters(rec.metadata, filters))

    async def nearest_neighbors(
        self,
        query_vector: list[float],
        k: int,
        num_candidates: int = 200,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        """Exact search; *num_candidates* does not apply."""
        candidates = [rec for rec in self._records.values() if matches_filters(rec.metadata, filters)]
        if k <= 0 or not candidates:
            return []
        if self._dimension is not None and len(query_vector) != self._dimension:
            raise StoreError(
                message=f"Query vector has {len(query_vector)} dims, store expects {self._dimension}",
                provider_name=self.get_provider_name(),
            )

        matrix = np.asarray([rec.embedding for rec in candidates], dtype=np.float64)
        scores = cosine_similarities(np.asarray(query_vector, dtype=np.float64), matrix)
        # Stable sort on the negated scores keeps insertion order for ties.
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            VectorHit(
                record_id=candidates[i].record_id,
                content=candidates[i].content,
                metadata=dict(candidates[i].metadata),
                score=float(np.clip(scores[i], 0.0, 1.0)),
            )
            for i in order
        ]

    async def get_records(
        self,
        filters: dict[str, Any],
        limit: int | None = None,
    ) -> list[VectorRecord]:
        found = [rec for rec in self._records.values() if matches_filters(rec.metadata, filters)]
        return found if limit is None else found[:limit]

    async def get_source_ids(self) -> set[str]:
        return {str(rec.metadata["source"]) for rec in self._records.values() if rec.metadata.get("source")}

    async def get_stats(self) -> CorpusStats:
        by_source: dict[str, int] = {}
        for rec in self._records.values():
            source = rec.metadata.get("source")
            if source:
                by_source[str(source)] = by_source.get(str(source), 0) + 1
        return CorpusStats(
            total_records=len(self._records),
            total_sources=len(by_source),
            records_by_source=dict(sorted(by_source.items())),
        )

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against each row of *matrix*.

    Zero vectors score 0.
    """
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
