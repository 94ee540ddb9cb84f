"""tutor_rag: course-PDF retrieval for grounded tutoring chats.

Ingests course PDFs (notes and exercise sets) into a vector store and
serves ranked, label-aware grounding text to a downstream chat model.
"""

__version__ = "0.1.0"
