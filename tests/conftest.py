"""Shared pytest fixtures for the tutor_rag test suite."""

from __future__ import annotations

import hashlib
import math
import struct
from pathlib import Path
from typing import Any

import pytest

from tutor_rag.config.tuning import ChunkingConfig, LabelPolicy
from tutor_rag.interfaces.embedding_provider import IEmbeddingProvider
from tutor_rag.models.rag import VectorRecord
from tutor_rag.providers.resource.sqlite_resource_repository import SQLiteResourceRepository
from tutor_rag.providers.vector_store.memory_provider import InMemoryVectorStore
from tutor_rag.services.ingestion.chunker import SemanticChunker

_EMBEDDING_DIM = 64


# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit vector by hashing *text*.

    Same text always produces the same vector, so a query equal to a
    stored chunk scores 1.0 against it.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Unsigned ints keep every value finite.
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.extend(texts)
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock_embedding"

    def is_available(self) -> bool:
        return True


class StaticEmbeddingProvider(MockEmbeddingProvider):
    """Returns the same vector for every input, e.g. a fixed query vector."""

    def __init__(self, vector: list[float]) -> None:
        super().__init__()
        self._vector = vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.extend(texts)
        return [list(self._vector) for _ in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        return list(self._vector)

    def get_dimension(self) -> int:
        return len(self._vector)


def scored_vector(score: float) -> list[float]:
    """3-d unit vector whose cosine with ``[1, 0, 0]`` is *score*."""
    return [score, math.sqrt(max(0.0, 1.0 - score * score)), 0.0]


QUERY_VECTOR = [1.0, 0.0, 0.0]


def make_record(
    record_id: str,
    content: str,
    score: float,
    source: str = "demo",
    chunk_index: int = 0,
    problem_label: str | None = None,
) -> VectorRecord:
    """Vector record scoring *score* against :data:`QUERY_VECTOR`."""
    metadata: dict[str, Any] = {
        "source": source,
        "resource_id": f"res-{record_id}",
        "chunk_index": chunk_index,
        "chunk_type": "problem" if problem_label else "paragraph",
    }
    if problem_label:
        metadata["problem_label"] = problem_label
    return VectorRecord(record_id=record_id, content=content, embedding=scored_vector(score), metadata=metadata)


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------


def prose_block(length: int, sentence: str = "Exponents describe repeated multiplication of one base value.") -> str:
    """Label-free prose of roughly *length* characters ending in a period."""
    text = ""
    while len(text) < length:
        text = f"{text} {sentence}" if text else sentence
    return text


@pytest.fixture
def exercise_text() -> str:
    """An exercise set with four labelled problems."""
    problems = [
        "A1. Simplify the expression (x^3)(x^4) and write the answer using a single exponent. "
        "Explain which exponent rule you used and why it applies here.",
        "A2. Evaluate the quotient (2^7)/(2^3) without a calculator. "
        "Then rewrite the same quotient with a negative exponent in the denominator.",
        "A3. Rewrite the radical expression sqrt(x^6) using rational exponents. "
        "State any restriction on x that makes the rewrite valid for real numbers.",
        "A4. Compute (3x^2 y)^3 and expand every factor. "
        "Check your result by substituting x = 1 and y = 2 into both forms.",
    ]
    return "Exercises\n\n" + "\n\n".join(problems)


@pytest.fixture
def three_paragraph_text() -> str:
    """Three label-free paragraphs of about 400 characters each."""
    return "\n\n".join(
        [
            prose_block(400, "Exponents describe repeated multiplication of one base value."),
            prose_block(400, "Radicals undo powers and are written with the root symbol."),
            prose_block(400, "Scientific notation writes very large numbers compactly."),
        ]
    )


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Return a deterministic mock embedding provider."""
    return MockEmbeddingProvider()


@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    """Return an empty in-memory vector store."""
    return InMemoryVectorStore(name="test")


@pytest.fixture
def chunking_config() -> ChunkingConfig:
    return ChunkingConfig()


@pytest.fixture
def chunker(chunking_config: ChunkingConfig) -> SemanticChunker:
    return SemanticChunker(config=chunking_config, label_policy=LabelPolicy())


@pytest.fixture
async def resource_repository(tmp_path: Path) -> SQLiteResourceRepository:
    """Return an initialised SQLite resource repository in a temp directory."""
    repo = SQLiteResourceRepository(db_path=tmp_path / "db" / "resources.db")
    await repo.initialize()
    return repo
