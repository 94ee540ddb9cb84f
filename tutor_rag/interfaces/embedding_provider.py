"""Abstract base class for text-embedding providers.

Implementations wrap an embedding model (OpenAI ``text-embedding-3-large``
by default) behind one contract so ingestion, retrieval and memory can be
tested with a deterministic fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (tutor_rag/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for embedding services.

    Every vector returned by one provider has the same length,
    :meth:`get_dimension`.  Vector stores reject vectors of any other size.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        tutor_rag.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Used for query embedding and for per-chunk ingestion, where chunks
        are embedded one at a time.

        Raises
        ------
        tutor_rag.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the length of every vector this provider produces."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` when the provider is configured (e.g. has an API key)."""
