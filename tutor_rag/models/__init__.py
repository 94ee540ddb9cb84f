"""Domain models re-exported for ``from tutor_rag.models import ...``."""

from __future__ import annotations

from tutor_rag.models.catalog import Chapter, CourseCatalog
from tutor_rag.models.rag import (
    ChunkMetadata,
    ChunkType,
    CorpusStats,
    Embedding,
    IngestionResult,
    MemoryHit,
    Resource,
    SearchHit,
    TextChunk,
    VectorHit,
    VectorRecord,
)

__all__ = [
    "Chapter",
    "ChunkMetadata",
    "ChunkType",
    "CorpusStats",
    "CourseCatalog",
    "Embedding",
    "IngestionResult",
    "MemoryHit",
    "Resource",
    "SearchHit",
    "TextChunk",
    "VectorHit",
    "VectorRecord",
]
