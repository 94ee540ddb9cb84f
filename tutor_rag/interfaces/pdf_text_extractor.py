"""Abstract base class for PDF text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: PyMuPDFTextExtractor (tutor_rag/providers/pdf/)
class IPDFTextExtractor(ABC):
    """Turns raw PDF bytes into plain text."""

    @abstractmethod
    def extract_text(self, data: bytes) -> str:
        """Return the document's text, pages separated by form feeds.

        Raises
        ------
        tutor_rag.utils.errors.ExtractionError
            If *data* is not a readable PDF.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"pymupdf"``."""
