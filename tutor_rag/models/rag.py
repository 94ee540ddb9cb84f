"""Retrieval data models: chunks, stored records and query results.

Ingestion turns a PDF into :class:`TextChunk` objects, persists each as a
:class:`Resource` plus an :class:`Embedding`, and the retriever answers
queries with ranked :class:`SearchHit` objects.  All models are frozen;
re-ingesting a source replaces its records wholesale.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChunkType(str, Enum):
    """Which chunking strategy produced a chunk."""

    PROBLEM = "problem"
    PROBLEM_FRAGMENT = "problem-fragment"
    CONTENT = "content"
    PARAGRAPH = "paragraph"
    SENTENCE = "sentence"
    PART = "part"
    FIXED_SIZE = "fixed-size"


# ---------------------------------------------------------------------------
# Chunker output
# ---------------------------------------------------------------------------
class ChunkMetadata(BaseModel):
    """Tags attached to a chunk by the strategy that produced it."""

    model_config = ConfigDict(frozen=True)

    chunk_type: ChunkType
    # Set when the chunk is anchored to a detected exercise label, e.g. "A1".
    problem_label: str | None = None


class TextChunk(BaseModel):
    """A bounded span of cleaned document text, before persistence."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(min_length=1)
    metadata: ChunkMetadata


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------
class Resource(BaseModel):
    """A persisted unit of retrievable text.

    Created once during ingestion and immutable afterwards.  Deleted and
    re-created with every other record of its ``source`` on re-ingestion.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier generated at ingestion time.")
    content: str = Field(min_length=1, description="Cleaned chunk text.")
    source: str = Field(description="Originating document, e.g. '3_Radicals_Notes'.")
    chunk_index: int = Field(ge=0, description="0-based position within the source.")
    metadata: ChunkMetadata
    created_at: datetime = Field(default_factory=_utcnow)


class Embedding(BaseModel):
    """Vector bound to a :class:`Resource`.

    ``content`` and ``source`` are duplicated from the resource so search
    results are self-contained and filterable.  ``resource_id`` is a weak
    reference; no store enforces it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    resource_id: str
    content: str
    source: str
    chunk_index: int = Field(ge=0)
    metadata: ChunkMetadata
    embedding: list[float] = Field(min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)

    def to_vector_record(self) -> VectorRecord:
        meta: dict[str, str | int | float | bool] = {
            "source": self.source,
            "resource_id": self.resource_id,
            "chunk_index": self.chunk_index,
            "chunk_type": self.metadata.chunk_type.value,
            "created_at": self.created_at.isoformat(),
        }
        if self.metadata.problem_label is not None:
            meta["problem_label"] = self.metadata.problem_label
        return VectorRecord(
            record_id=self.id,
            content=self.content,
            embedding=self.embedding,
            metadata=meta,
        )


# ---------------------------------------------------------------------------
# Vector store wire types
# ---------------------------------------------------------------------------
class VectorRecord(BaseModel):
    """What a vector store persists: text, vector and flat scalar metadata."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    content: str
    embedding: list[float] = Field(min_length=1)
    metadata: dict[str, str | int | float | bool] = Field(default_factory=dict)


class VectorHit(BaseModel):
    """One nearest-neighbour result; ``score`` is cosine similarity in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float = Field(ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------
class SearchHit(BaseModel):
    """A ranked grounding passage returned by the retriever.

    ``similarity`` is comparable only within one query.  Label boosting can
    raise it, always clamped to 1.0.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    similarity: float = Field(ge=0.0, le=1.0)
    resource_id: str | None = None
    source: str | None = None
    chunk_index: int | None = None
    problem_label: str | None = None

    @classmethod
    def from_vector_hit(cls, hit: VectorHit) -> SearchHit:
        meta = hit.metadata
        chunk_index = meta.get("chunk_index")
        return cls(
            content=hit.content,
            similarity=hit.score,
            resource_id=meta.get("resource_id") or hit.record_id,
            source=meta.get("source"),
            chunk_index=int(chunk_index) if chunk_index is not None else None,
            problem_label=meta.get("problem_label"),
        )


class MemoryHit(BaseModel):
    """A remembered conversation turn recalled for a thread."""

    model_config = ConfigDict(frozen=True)

    thread_id: str
    role: str
    turn: int
    content: str
    similarity: float = Field(ge=0.0, le=1.0)


class IngestionResult(BaseModel):
    """Summary of ingesting one source document."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    chunks_created: int = Field(ge=0, description="Chunks persisted with an embedding.")
    chunks_dropped: int = Field(default=0, ge=0, description="Chunks whose embedding failed.")
    records_replaced: int = Field(default=0, ge=0, description="Old records deleted first.")
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")
    error: str | None = Field(default=None, description="Set when the document failed.")

    @property
    def succeeded(self) -> bool:
        return self.error is None


class CorpusStats(BaseModel):
    """Record counts across the vector store."""

    model_config = ConfigDict(frozen=True)

    total_records: int = Field(ge=0)
    total_sources: int = Field(ge=0)
    records_by_source: dict[str, int] = Field(default_factory=dict)
