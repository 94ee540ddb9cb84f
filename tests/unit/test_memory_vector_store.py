"""Unit tests for the in-memory vector store and the shared filter helpers."""

from __future__ import annotations

import pytest

from tests.conftest import QUERY_VECTOR, make_record
from tutor_rag.models.rag import VectorRecord
from tutor_rag.providers.vector_store.filters import matches_filters, to_chroma_where
from tutor_rag.providers.vector_store.memory_provider import InMemoryVectorStore
from tutor_rag.utils.errors import StoreError


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=3)


class TestUpsert:
    @pytest.mark.asyncio
    async def test_upsert_and_count(self, store: InMemoryVectorStore) -> None:
        written = await store.upsert_many([make_record("a", "A", 0.1), make_record("b", "B", 0.2, source="other")])

        assert written == 2
        assert await store.count() == 2
        assert await store.count({"source": "other"}) == 1

    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id(self, store: InMemoryVectorStore) -> None:
        await store.upsert_many([make_record("a", "old", 0.1)])
        await store.upsert_many([make_record("a", "new", 0.1)])

        records = await store.get_records({"source": "demo"})
        assert [r.content for r in records] == ["new"]

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, store: InMemoryVectorStore) -> None:
        bad = VectorRecord(record_id="x", content="x", embedding=[1.0, 0.0], metadata={"source": "demo"})
        with pytest.raises(StoreError):
            await store.upsert_many([bad])

    @pytest.mark.asyncio
    async def test_first_upsert_fixes_dimension(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_many([make_record("a", "A", 0.3)])

        with pytest.raises(StoreError):
            await store.nearest_neighbors([1.0, 0.0], k=1)


class TestNearestNeighbors:
    @pytest.mark.asyncio
    async def test_ordering_and_scores(self, store: InMemoryVectorStore) -> None:
        await store.upsert_many([make_record("lo", "lo", 0.2), make_record("hi", "hi", 0.8)])

        hits = await store.nearest_neighbors(QUERY_VECTOR, k=5)

        assert [h.record_id for h in hits] == ["hi", "lo"]
        assert hits[0].score == pytest.approx(0.8)
        assert hits[0].metadata["source"] == "demo"

    @pytest.mark.asyncio
    async def test_k_limits_results(self, store: InMemoryVectorStore) -> None:
        await store.upsert_many([make_record(str(n), str(n), n / 10) for n in range(5)])
        assert len(await store.nearest_neighbors(QUERY_VECTOR, k=2)) == 2

    @pytest.mark.asyncio
    async def test_filters(self, store: InMemoryVectorStore) -> None:
        await store.upsert_many(
            [make_record("a", "a", 0.9, source="s1"), make_record("b", "b", 0.5, source="s2")]
        )

        hits = await store.nearest_neighbors(QUERY_VECTOR, k=5, filters={"source": {"$in": ["s2"]}})

        assert [h.record_id for h in hits] == ["b"]

    @pytest.mark.asyncio
    async def test_empty_store(self, store: InMemoryVectorStore) -> None:
        assert await store.nearest_neighbors(QUERY_VECTOR, k=3) == []


class TestDeleteAndStats:
    @pytest.mark.asyncio
    async def test_delete_where(self, store: InMemoryVectorStore) -> None:
        await store.upsert_many(
            [
                make_record("a", "a", 0.1, source="s1"),
                make_record("b", "b", 0.1, source="s2"),
                make_record("c", "c", 0.1, source="s3"),
            ]
        )

        removed = await store.delete_where({"source": {"$in": ["s1", "s2"]}})

        assert removed == 2
        assert await store.get_source_ids() == {"s3"}

    @pytest.mark.asyncio
    async def test_delete_without_filter_refused(self, store: InMemoryVectorStore) -> None:
        with pytest.raises(StoreError):
            await store.delete_where({})

    @pytest.mark.asyncio
    async def test_stats(self, store: InMemoryVectorStore) -> None:
        await store.upsert_many(
            [make_record("a", "a", 0.1, source="s2"), make_record("b", "b", 0.1, source="s1", chunk_index=1),
             make_record("c", "c", 0.1, source="s2", chunk_index=1)]
        )

        stats = await store.get_stats()

        assert stats.total_records == 3
        assert stats.total_sources == 2
        assert stats.records_by_source == {"s1": 1, "s2": 2}

    @pytest.mark.asyncio
    async def test_get_records_limit(self, store: InMemoryVectorStore) -> None:
        await store.upsert_many([make_record(str(n), str(n), 0.1, chunk_index=n) for n in range(4)])

        records = await store.get_records({"source": "demo", "chunk_index": 2}, limit=1)

        assert [r.record_id for r in records] == ["2"]


class TestFilterHelpers:
    def test_equality_and_membership(self) -> None:
        meta = {"source": "a", "chunk_index": 3}
        assert matches_filters(meta, None)
        assert matches_filters(meta, {"source": "a", "chunk_index": 3})
        assert matches_filters(meta, {"source": {"$in": ["a", "b"]}})
        assert not matches_filters(meta, {"source": {"$in": ["b"]}})
        assert not matches_filters(meta, {"thread_id": "t"})

    def test_unsupported_operator(self) -> None:
        with pytest.raises(ValueError):
            matches_filters({"source": "a"}, {"source": {"$gt": 1}})

    def test_chroma_where_single_clause(self) -> None:
        assert to_chroma_where({"source": "a"}) == {"source": {"$eq": "a"}}
        assert to_chroma_where(None) is None

    def test_chroma_where_conjunction(self) -> None:
        where = to_chroma_where({"source": {"$in": ["a"]}, "chunk_index": 4})
        assert where == {"$and": [{"source": {"$in": ["a"]}}, {"chunk_index": {"$eq": 4}}]}
