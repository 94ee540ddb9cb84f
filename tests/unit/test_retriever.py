"""Unit tests for the Retriever query path."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.conftest import QUERY_VECTOR, StaticEmbeddingProvider, make_record, prose_block
from tutor_rag.interfaces.resource_repository import IResourceRepository
from tutor_rag.interfaces.vector_store_provider import IVectorStoreProvider
from tutor_rag.models.rag import ChunkMetadata, ChunkType, Resource, VectorHit
from tutor_rag.providers.resource.sqlite_resource_repository import SQLiteResourceRepository
from tutor_rag.providers.vector_store.memory_provider import InMemoryVectorStore
from tutor_rag.services.retrieval.retriever import Retriever
from tutor_rag.utils.errors import EmbeddingError

_LATE_A1 = prose_block(200) + " A1."
_A1_STATEMENT = "Rewrite the product (x^2)(x^3) using a single exponent."


def _hit_from(record_id: str, content: str, score: float, chunk_index: int, source: str = "demo") -> VectorHit:
    record = make_record(record_id, content, score, source=source, chunk_index=chunk_index)
    return VectorHit(record_id=record.record_id, content=record.content, metadata=dict(record.metadata), score=score)


@pytest.fixture
def query_embedder() -> StaticEmbeddingProvider:
    return StaticEmbeddingProvider(QUERY_VECTOR)


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=3)


@pytest.fixture
def mock_repository() -> MagicMock:
    repo = MagicMock(spec=IResourceRepository)
    repo.lexical_search = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def retriever(
    query_embedder: StaticEmbeddingProvider, store: InMemoryVectorStore, mock_repository: MagicMock
) -> Retriever:
    return Retriever(embedding_provider=query_embedder, vector_store=store, resource_repository=mock_repository)


async def _seed_distractors(store: InMemoryVectorStore, count: int = 6) -> None:
    await store.upsert_many(
        [
            make_record(f"d{n}", f"Distractor passage {n} about logarithms.", 0.5 - n * 0.01, chunk_index=10 + n)
            for n in range(count)
        ]
    )


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


class TestGuards:
    @pytest.mark.parametrize("limit", [0, -3])
    @pytest.mark.asyncio
    async def test_non_positive_limit(self, retriever: Retriever, query_embedder: StaticEmbeddingProvider, limit: int) -> None:
        assert await retriever.find_relevant_content("What is A1?", limit) == []
        assert query_embedder.calls == []

    @pytest.mark.asyncio
    async def test_blank_query(self, retriever: Retriever) -> None:
        assert await retriever.find_relevant_content("   ", 4) == []

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, store: InMemoryVectorStore, mock_repository: MagicMock) -> None:
        await _seed_distractors(store)
        embedder = MagicMock()
        embedder.embed_single = AsyncMock(side_effect=EmbeddingError("boom", provider_name="openai_embedding"))
        retriever = Retriever(embedding_provider=embedder, vector_store=store, resource_repository=mock_repository)

        with pytest.raises(EmbeddingError):
            await retriever.find_relevant_content("exponents", 4)


# ---------------------------------------------------------------------------
# Plain vector ranking
# ---------------------------------------------------------------------------


class TestVectorRanking:
    @pytest.mark.asyncio
    async def test_orders_by_similarity(self, retriever: Retriever, store: InMemoryVectorStore) -> None:
        await store.upsert_many(
            [
                make_record("low", "Low match.", 0.2, chunk_index=0),
                make_record("high", "High match.", 0.9, chunk_index=1),
                make_record("mid", "Mid match.", 0.5, chunk_index=2),
            ]
        )

        hits = await retriever.find_relevant_content("exponent rules", 2)

        assert [h.content for h in hits] == ["High match.", "Mid match."]
        assert hits[0].similarity == pytest.approx(0.9)
        assert hits[0].source == "demo"
        assert hits[0].resource_id == "res-high"

    @pytest.mark.asyncio
    async def test_deterministic(self, retriever: Retriever, store: InMemoryVectorStore) -> None:
        await _seed_distractors(store)
        await store.upsert_many([make_record("tie", "Tied with d0.", 0.5, chunk_index=30)])

        first = await retriever.find_relevant_content("logarithms", 4)
        second = await retriever.find_relevant_content("logarithms", 4)

        assert first == second
        # Equal scores keep insertion order.
        assert [h.resource_id for h in first[:2]] == ["res-d0", "res-tie"]

    @pytest.mark.asyncio
    async def test_similarity_never_exceeds_one(self, retriever: Retriever, store: InMemoryVectorStore) -> None:
        await store.upsert_many(
            [
                make_record("a1", "A1. Solve for x when 2^x = 8.", 0.95, chunk_index=0),
                make_record("next", "Show every step.", 0.9, chunk_index=1),
            ]
        )

        hits = await retriever.find_relevant_content("What is A1?", 4)

        assert hits
        assert all(0.0 <= h.similarity <= 1.0 for h in hits)
        assert hits[0].similarity == 1.0


# ---------------------------------------------------------------------------
# Source filtering
# ---------------------------------------------------------------------------


class TestSourceFilter:
    @pytest.mark.asyncio
    async def test_results_restricted_to_sources(self, retriever: Retriever, store: InMemoryVectorStore) -> None:
        await store.upsert_many(
            [
                make_record("n1", "Notes chunk.", 0.9, source="2_Exponents_Notes"),
                make_record("e1", "Exercise chunk.", 0.4, source="2_Exponents_Exercises"),
            ]
        )

        hits = await retriever.find_relevant_content("exponents", 4, sources=["2_Exponents_Exercises"])

        assert [h.source for h in hits] == ["2_Exponents_Exercises"]

    @pytest.mark.asyncio
    async def test_empty_sources_means_no_filter(self, retriever: Retriever, store: InMemoryVectorStore) -> None:
        await store.upsert_many(
            [make_record("a", "A.", 0.9, source="one"), make_record("b", "B.", 0.8, source="two")]
        )

        hits = await retriever.find_relevant_content("anything", 4, sources=[])

        assert {h.source for h in hits} == {"one", "two"}

    @pytest.mark.asyncio
    async def test_unknown_source_returns_empty(
        self, query_embedder: StaticEmbeddingProvider, store: InMemoryVectorStore, resource_repository: SQLiteResourceRepository
    ) -> None:
        await _seed_distractors(store)
        retriever = Retriever(query_embedder, store, resource_repository)

        assert await retriever.find_relevant_content("logarithms", 4, sources=["missing"]) == []

    @pytest.mark.asyncio
    async def test_filtered_out_query_skips_lexical_search(
        self, query_embedder: StaticEmbeddingProvider, store: InMemoryVectorStore, resource_repository: SQLiteResourceRepository
    ) -> None:
        # A resource row with no matching embedding must not leak in through the fallback.
        await resource_repository.add_resources(
            [
                Resource(
                    id="r-x",
                    content="Radicals simplify when the index divides the exponent.",
                    source="3_Radicals_Notes",
                    chunk_index=0,
                    metadata=ChunkMetadata(chunk_type=ChunkType.PARAGRAPH),
                )
            ]
        )
        await store.upsert_many([make_record("y1", "Logarithm basics.", 0.8, source="4_Logarithms_Notes")])
        retriever = Retriever(query_embedder, store, resource_repository)

        hits = await retriever.find_relevant_content("Radicals simplify", 4, sources={"3_Radicals_Notes"})

        assert hits == []

    @pytest.mark.asyncio
    async def test_filtered_out_query_does_not_call_repository(
        self, query_embedder: StaticEmbeddingProvider, mock_repository: MagicMock
    ) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.count = AsyncMock(return_value=3)
        store.nearest_neighbors = AsyncMock(return_value=[])
        retriever = Retriever(query_embedder, store, mock_repository)

        assert await retriever.find_relevant_content("exponents", 4, sources=["demo"]) == []
        mock_repository.lexical_search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_post_filter_when_store_ignores_filter(
        self, query_embedder: StaticEmbeddingProvider, mock_repository: MagicMock
    ) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.count = AsyncMock(return_value=2)
        store.nearest_neighbors = AsyncMock(
            return_value=[_hit_from("x", "Wrong source.", 0.9, 0, source="other")]
        )
        retriever = Retriever(query_embedder, store, mock_repository)

        hits = await retriever.find_relevant_content("exponents", 4, sources=["demo"])

        assert hits == []
        mock_repository.lexical_search.assert_not_awaited()
        _, kwargs = store.nearest_neighbors.call_args
        assert kwargs["filters"] == {"source": {"$in": ["demo"]}}


# ---------------------------------------------------------------------------
# Problem labels
# ---------------------------------------------------------------------------


class TestProblemLabelQueries:
    @pytest.mark.asyncio
    async def test_following_chunk_is_forced_in(self, retriever: Retriever, store: InMemoryVectorStore) -> None:
        await _seed_distractors(store)
        await store.upsert_many(
            [
                make_record("r0", _LATE_A1, 0.3, chunk_index=0),
                make_record("r1", _A1_STATEMENT, 0.1, chunk_index=1),
            ]
        )

        hits = await retriever.find_relevant_content("What is A1?", 2)

        assert [h.resource_id for h in hits] == ["res-r0", "res-r1"]

    @pytest.mark.asyncio
    async def test_label_query_widens_fetch(
        self, query_embedder: StaticEmbeddingProvider, mock_repository: MagicMock
    ) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.count = AsyncMock(return_value=1)
        store.nearest_neighbors = AsyncMock(return_value=[_hit_from("a", "Some text.", 0.5, 0)])
        retriever = Retriever(query_embedder, store, mock_repository)

        await retriever.find_relevant_content("What is A1?", 4)
        label_k = store.nearest_neighbors.call_args.kwargs["k"]
        await retriever.find_relevant_content("What are exponents?", 4)
        plain_k = store.nearest_neighbors.call_args.kwargs["k"]

        assert label_k == 40
        assert plain_k == 24

    @pytest.mark.asyncio
    async def test_following_chunk_fetched_from_store(
        self, query_embedder: StaticEmbeddingProvider, mock_repository: MagicMock
    ) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.count = AsyncMock(return_value=3)
        store.nearest_neighbors = AsyncMock(
            return_value=[
                _hit_from("d0", "Distractor about logarithms.", 0.5, 7),
                _hit_from("r0", _LATE_A1, 0.3, 0),
            ]
        )
        store.get_records = AsyncMock(return_value=[make_record("r1", _A1_STATEMENT, 0.1, chunk_index=1)])
        retriever = Retriever(query_embedder, store, mock_repository)

        hits = await retriever.find_relevant_content("What is A1?", 2)

        store.get_records.assert_awaited_once_with({"source": "demo", "chunk_index": 1}, limit=1)
        assert [h.content for h in hits] == [_LATE_A1, _A1_STATEMENT]
        assert hits[1].chunk_index == 1
        assert hits[1].similarity == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_early_label_needs_no_following(self, retriever: Retriever, store: InMemoryVectorStore) -> None:
        await _seed_distractors(store)
        await store.upsert_many(
            [
                make_record("a1", "A1. Simplify (x^2)^3 and explain the power rule you used.", 0.3, chunk_index=0),
                make_record("a1b", "Unrelated continuation.", 0.05, chunk_index=1),
            ]
        )

        hits = await retriever.find_relevant_content("What is A1?", 2)

        assert hits[0].resource_id == "res-a1"
        assert "res-a1b" not in {h.resource_id for h in hits}


# ---------------------------------------------------------------------------
# Lexical fallback
# ---------------------------------------------------------------------------


class TestLexicalFallback:
    @pytest.mark.asyncio
    async def test_empty_store_uses_lexical_search(
        self, query_embedder: StaticEmbeddingProvider, store: InMemoryVectorStore, resource_repository: SQLiteResourceRepository
    ) -> None:
        await resource_repository.add_resources(
            [
                Resource(
                    id="r-1",
                    content="The exponent rules for products and quotients.",
                    source="2_Exponents_Notes",
                    chunk_index=0,
                    metadata=ChunkMetadata(chunk_type=ChunkType.PARAGRAPH),
                ),
                Resource(
                    id="r-2",
                    content="Radicals are roots.",
                    source="3_Radicals_Notes",
                    chunk_index=0,
                    metadata=ChunkMetadata(chunk_type=ChunkType.PARAGRAPH),
                ),
            ]
        )
        retriever = Retriever(query_embedder, store, resource_repository)

        hits = await retriever.find_relevant_content("Explain EXPONENT rules", 4)

        assert [h.resource_id for h in hits] == ["r-1"]
        assert hits[0].similarity == pytest.approx(0.6)
        assert query_embedder.calls == []

    @pytest.mark.asyncio
    async def test_short_tokens_are_ignored(self, retriever: Retriever, mock_repository: MagicMock) -> None:
        assert await retriever.find_relevant_content("is x ok", 4) == []
        mock_repository.lexical_search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_respects_sources(self, retriever: Retriever, mock_repository: MagicMock) -> None:
        await retriever.find_relevant_content("exponents rules", 3, sources={"b", "a"})

        mock_repository.lexical_search.assert_awaited_once_with(
            ["exponents", "rules"], limit=3, sources=["a", "b"]
        )

    @pytest.mark.asyncio
    async def test_no_vector_hits_falls_back(
        self, query_embedder: StaticEmbeddingProvider, mock_repository: MagicMock
    ) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.count = AsyncMock(return_value=5)
        store.nearest_neighbors = AsyncMock(return_value=[])
        retriever = Retriever(query_embedder, store, mock_repository)

        await retriever.find_relevant_content("exponents", 4)

        assert query_embedder.calls == ["exponents"]
        mock_repository.lexical_search.assert_awaited_once()
