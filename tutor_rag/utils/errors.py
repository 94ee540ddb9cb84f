"""Custom exception hierarchy for tutor_rag.

All application exceptions inherit from :class:`TutorRAGError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "openai_embedding", "chromadb", "pymupdf") caused the failure.

    TutorRAGError  (base -- catch-all for any tutor_rag error)
    +-- ExtractionError      (PDF unreadable / corrupt)
    +-- EmbeddingError       (embedding API failure)
    |   +-- RateLimitError   (provider rate-limit exceeded)
    +-- StoreError           (vector store / resource repository failure)
    +-- IngestError          (a whole document could not be ingested)
    +-- ConfigurationError   (startup / missing config / unknown chapter)

Ingestion retries on :class:`EmbeddingError`; retrieval lets
:class:`EmbeddingError` and :class:`StoreError` propagate to the caller.
"""


class TutorRAGError(Exception):
    """Base exception for all tutor_rag errors.

    ``__str__`` prefixes the provider name in brackets, e.g.
    ``[chromadb] upsert failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion-side errors
# ---------------------------------------------------------------------------

class ExtractionError(TutorRAGError):
    """Raised when text cannot be extracted from a PDF."""

    def __init__(
        self,
        message: str = "PDF text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(TutorRAGError):
    """Raised when the embedding model call fails (auth, network, bad input)."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(EmbeddingError):
    """Raised when the embedding API answers with a rate-limit response.

    Subclasses :class:`EmbeddingError` so the ingestion retry loop treats
    it like any other transient embedding failure.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestError(TutorRAGError):
    """Raised when a document cannot be ingested at all.

    Either extraction failed or no chunk survived embedding.  Chunk-level
    failures never raise this on their own.
    """

    def __init__(
        self,
        message: str = "Document ingestion failed",
        provider_name: str | None = None,
        source_id: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._source_id = source_id

    @property
    def source_id(self) -> str | None:
        return self._source_id


# ---------------------------------------------------------------------------
# Storage / configuration errors
# ---------------------------------------------------------------------------

class StoreError(TutorRAGError):
    """Raised when the vector store or resource repository rejects an operation."""

    def __init__(
        self,
        message: str = "Store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(TutorRAGError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
