from tutor_rag.services.retrieval.retriever import Retriever

__all__ = ["Retriever"]
