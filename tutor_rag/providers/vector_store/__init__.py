"""Vector store implementations.

``ChromaDBProvider`` is imported directly where needed so that importing
this package does not load chromadb.
"""

from tutor_rag.providers.vector_store.memory_provider import InMemoryVectorStore

__all__ = ["InMemoryVectorStore"]
