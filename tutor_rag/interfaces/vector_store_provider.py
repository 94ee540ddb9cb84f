"""Abstract base class for vector-store providers.

Stores pre-embedded :class:`~tutor_rag.models.rag.VectorRecord` objects and
answers cosine nearest-neighbour queries.  Implementations may wrap
ChromaDB, an in-process numpy index, or any database with vector search.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from tutor_rag.models.rag import CorpusStats, VectorHit, VectorRecord


# Concrete implementations (tutor_rag/providers/vector_store/):
#   ChromaDBProvider       -- persistent local collection
#   InMemoryVectorStore    -- numpy cosine search, for tests and one-off runs
class IVectorStoreProvider(ABC):
    """Contract for vector stores used by ingestion, retrieval and memory.

    **Filter syntax** (the *filters* argument everywhere):

    * ``{"source": "3_Radicals_Notes"}`` -- equality.
    * ``{"source": {"$in": ["a", "b"]}}`` -- membership.
    * Several keys are combined with AND, e.g.
      ``{"source": "a", "chunk_index": 4}``.

    A store holds vectors of one dimensionality only.  Upserting a vector
    of a different length raises
    :class:`~tutor_rag.utils.errors.StoreError`.
    """

    @abstractmethod
    async def upsert_many(self, records: list[VectorRecord]) -> int:
        """Insert or replace *records* by ``record_id``.

        Returns
        -------
        int
            Number of records written.

        Raises
        ------
        tutor_rag.utils.errors.StoreError
            If the backend fails or a vector has the wrong dimensionality.
        """

    @abstractmethod
    async def delete_where(self, filters: dict[str, Any]) -> int:
        """Delete every record matching *filters*; return how many went.

        An empty filter is refused with ``StoreError`` rather than wiping
        the store.
        """

    @abstractmethod
    async def count(self, filters: dict[str, Any] | None = None) -> int:
        """Return the number of stored records, optionally filtered."""

    @abstractmethod
    async def nearest_neighbors(
        self,
        query_vector: list[float],
        k: int,
        num_candidates: int = 200,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        """Return up to *k* records most similar to *query_vector*.

        Parameters
        ----------
        query_vector:
            Embedding of the query, same dimensionality as the store.
        k:
            Maximum number of hits.
        num_candidates:
            Candidate pool for approximate search.  Exact backends may
            ignore it.
        filters:
            Optional metadata filter (see class docstring).

        Returns
        -------
        list[VectorHit]
            Hits ordered by cosine similarity, descending.  Ties keep the
            store's insertion order.
        """

    @abstractmethod
    async def get_records(
        self,
        filters: dict[str, Any],
        limit: int | None = None,
    ) -> list[VectorRecord]:
        """Fetch stored records (with their vectors) matching *filters*."""

    @abstractmethod
    async def get_source_ids(self) -> set[str]:
        """Return every distinct ``source`` metadata value."""

    @abstractmethod
    async def get_stats(self) -> CorpusStats:
        """Return record counts per source."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` when the backend answers."""
