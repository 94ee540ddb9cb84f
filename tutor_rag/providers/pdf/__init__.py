"""PDF text extraction implementations."""

from tutor_rag.providers.pdf.pymupdf_extractor import PyMuPDFTextExtractor

__all__ = ["PyMuPDFTextExtractor"]
