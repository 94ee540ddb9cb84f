"""Course PDF ingestion: **extract -> normalize -> chunk -> embed -> store**.

- **text_cleaner** -- line-ending, hyphenation and whitespace normalisation.
- **chunking_strategies** -- problem-label, paragraph, sentence, part and
  fixed-size strategies, tried in priority order.
- **chunker** -- :class:`SemanticChunker`, which picks the strategy.
- **ingestion_service** -- :class:`IngestionService`, single PDFs and
  whole catalog chapters.
"""

from tutor_rag.services.ingestion.chunker import SemanticChunker
from tutor_rag.services.ingestion.ingestion_service import IngestionService
from tutor_rag.services.ingestion.text_cleaner import TextCleaner

__all__ = ["IngestionService", "SemanticChunker", "TextCleaner"]
