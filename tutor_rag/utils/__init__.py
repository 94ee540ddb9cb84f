"""Utility modules for tutor_rag.

- **errors** -- exception hierarchy rooted at :class:`TutorRAGError`; each
  layer raises its own subclass so callers can handle failures granularly.
- **logging** -- structlog setup: coloured console output in development,
  JSON in production.
- **problem_labels** -- the ``A1``-style exercise label pattern shared by
  the chunker and the retriever.
"""

from tutor_rag.utils.errors import (
    ConfigurationError,
    EmbeddingError,
    ExtractionError,
    IngestError,
    RateLimitError,
    StoreError,
    TutorRAGError,
)
from tutor_rag.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "EmbeddingError",
    "ExtractionError",
    "IngestError",
    "RateLimitError",
    "StoreError",
    "TutorRAGError",
    "configure_logging",
    "get_logger",
]
