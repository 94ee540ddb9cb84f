"""PDF text extraction using PyMuPDF (fitz).

Reads the document from memory, extracts text page by page and joins the
pages with form feeds, which the text cleaner turns into line breaks.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from tutor_rag.interfaces.pdf_text_extractor import IPDFTextExtractor
from tutor_rag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PyMuPDFTextExtractor(IPDFTextExtractor):
    """Extracts the text layer of a PDF held in memory."""

    def extract_text(self, data: bytes) -> str:
        if not data:
            raise ExtractionError(message="Empty PDF payload", provider_name=self.get_provider_name())

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            logger.error("pdf_open_failed", size=len(data), error=str(exc))
            raise ExtractionError(
                message=f"Unreadable PDF: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        try:
            if doc.needs_pass:
                raise ExtractionError(
                    message="PDF is password protected",
                    provider_name=self.get_provider_name(),
                )
            pages = [doc[page_num].get_text("text") for page_num in range(len(doc))]
        except ExtractionError:
            raise
        except Exception as exc:
            logger.error("pdf_text_extraction_failed", error=str(exc))
            raise ExtractionError(
                message=f"Text extraction failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            doc.close()

        text = "\f".join(pages)
        if not text.strip():
            logger.warning("pdf_no_text_extracted", pages=len(pages))
        logger.debug("pdf_text_extracted", pages=len(pages), chars=len(text))
        return text

    def get_provider_name(self) -> str:
        return "pymupdf"
