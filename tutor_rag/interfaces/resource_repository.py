"""Abstract base class for Resource persistence.

Resources are the text side of the corpus.  The vector store answers
semantic queries; the repository keeps the canonical chunk text and serves
the lexical fallback when vector search has nothing to offer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from tutor_rag.models.rag import Resource


# Concrete implementation: SQLiteResourceRepository (tutor_rag/providers/resource/)
class IResourceRepository(ABC):
    """Contract for Resource storage and lexical search."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if needed.  Safe to call repeatedly."""

    @abstractmethod
    async def add_resources(self, resources: list[Resource]) -> int:
        """Persist *resources*; return how many were written."""

    @abstractmethod
    async def delete_by_sources(self, sources: list[str]) -> int:
        """Delete every resource whose ``source`` is in *sources*."""

    @abstractmethod
    async def count(self, sources: list[str] | None = None) -> int:
        """Return the number of stored resources, optionally per source set."""

    @abstractmethod
    async def lexical_search(
        self,
        tokens: list[str],
        limit: int,
        sources: list[str] | None = None,
    ) -> list[Resource]:
        """Return resources whose content contains any of *tokens*.

        Parameters
        ----------
        tokens:
            Literal search terms, matched case-insensitively as substrings.
        limit:
            Maximum number of resources.
        sources:
            Restrict matches to these sources when given.

        Returns
        -------
        list[Resource]
            Matches ordered by source then chunk index.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"sqlite_resources"``."""
