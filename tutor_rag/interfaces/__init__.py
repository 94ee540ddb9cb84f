"""Interfaces for every external capability the pipeline depends on.

Business logic talks only to these ABCs; concrete adapters live in
``tutor_rag/providers`` and are wired together in ``tutor_rag/main.py``.

    Interface               Concrete implementations
    ---------------------   -----------------------------------------
    IEmbeddingProvider      OpenAIEmbeddingProvider
    IVectorStoreProvider    ChromaDBProvider, InMemoryVectorStore
    IResourceRepository     SQLiteResourceRepository
    IPDFTextExtractor       PyMuPDFTextExtractor
"""

from tutor_rag.interfaces.embedding_provider import IEmbeddingProvider
from tutor_rag.interfaces.pdf_text_extractor import IPDFTextExtractor
from tutor_rag.interfaces.resource_repository import IResourceRepository
from tutor_rag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "IPDFTextExtractor",
    "IResourceRepository",
    "IVectorStoreProvider",
]
