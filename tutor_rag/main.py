"""tutor_rag composition root.

Wires providers and services together via constructor injection.  Every
client is built once per :func:`build_services` call and handed to the
services that need it; nothing is held in module globals.

Typical use::

    services = build_services()
    await startup(services)
    hits = await services["retriever"].find_relevant_content("What is A1?", 4)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from tutor_rag.config.loader import load_catalog, load_config, load_tuning
from tutor_rag.config.settings import Settings
from tutor_rag.interfaces.embedding_provider import IEmbeddingProvider
from tutor_rag.interfaces.vector_store_provider import IVectorStoreProvider
from tutor_rag.models.catalog import CourseCatalog
from tutor_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from tutor_rag.providers.pdf.pymupdf_extractor import PyMuPDFTextExtractor
from tutor_rag.providers.resource.sqlite_resource_repository import SQLiteResourceRepository
from tutor_rag.providers.vector_store.memory_provider import InMemoryVectorStore
from tutor_rag.services.ingestion.chunker import SemanticChunker
from tutor_rag.services.ingestion.ingestion_service import IngestionService
from tutor_rag.services.memory.conversation_memory import ConversationMemory
from tutor_rag.services.retrieval.retriever import Retriever
from tutor_rag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

_VECTOR_BACKENDS = ("chromadb", "memory")


# ---------------------------------------------------------------------------
# Provider factories
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Build the OpenAI(-compatible) embedding provider.

    The provider is built even without an API key so that commands which
    only touch the stores still work; callers that embed check
    :meth:`is_available` first.
    """
    provider = OpenAIEmbeddingProvider(settings=app_settings)
    if not provider.is_available():
        logger.warning("embedding_provider_unavailable", reason="OPENAI_API_KEY not set")
    return provider


def _build_vector_store(app_settings: Settings, collection: str, dimension: int) -> IVectorStoreProvider:
    """Build a vector store for *collection* on the configured backend."""
    backend = app_settings.vector_backend.lower()
    if backend not in _VECTOR_BACKENDS:
        raise ConfigurationError(
            message=f"Unknown vector backend {app_settings.vector_backend!r}; expected one of {_VECTOR_BACKENDS}"
        )
    if backend == "memory":
        return InMemoryVectorStore(dimension=dimension, name=collection)

    # Deferred so the memory backend works without loading chromadb.
    from tutor_rag.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=collection,
        dimension=dimension,
    )


def _load_catalog_or_none(path: str) -> CourseCatalog | None:
    try:
        return load_catalog(path)
    except ConfigurationError as exc:
        logger.warning("catalog_unavailable", path=path, error=str(exc))
        return None


# ---------------------------------------------------------------------------
# Service assembly
# ---------------------------------------------------------------------------


def build_services(
    app_settings: Settings | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service with injected dependencies.

    Parameters
    ----------
    app_settings:
        Application settings.  Read from the environment when omitted.
    config:
        Resolved configuration dict.  Loaded from ``settings.config_path``
        when omitted.

    Returns
    -------
    dict
        Components keyed by role: ``settings``, ``tuning``, ``catalog``,
        ``embedding_provider``, ``vector_store``, ``memory_store``,
        ``resource_repository``, ``pdf_extractor``, ``chunker``,
        ``ingestion_service``, ``retriever`` and ``memory``.
    """
    s = app_settings or Settings()
    resolved = config if config is not None else load_config(s.config_path, settings=s)
    tuning = load_tuning(resolved)
    catalog = _load_catalog_or_none(s.catalog_path)

    embedding_provider = _build_embedding_provider(s)
    dimension = embedding_provider.get_dimension()
    vector_store = _build_vector_store(s, s.chromadb_collection, dimension)
    memory_store = _build_vector_store(s, s.memory_collection, dimension)
    resource_repository = SQLiteResourceRepository(db_path=Path(s.resource_db_path))
    pdf_extractor = PyMuPDFTextExtractor()

    chunker = SemanticChunker(config=tuning.chunking, label_policy=tuning.labels)
    ingestion_service = IngestionService(
        pdf_extractor=pdf_extractor,
        chunker=chunker,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        resource_repository=resource_repository,
        retry=tuning.retry,
        catalog=catalog,
        content_dir=s.content_dir,
    )
    retriever = Retriever(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        resource_repository=resource_repository,
        config=tuning.retrieval,
    )
    memory = ConversationMemory(
        embedding_provider=embedding_provider,
        vector_store=memory_store,
        config=tuning.memory,
    )

    logger.info(
        "services_built",
        embedding=embedding_provider.get_provider_name(),
        vector_store=vector_store.get_provider_name(),
        dimension=dimension,
        chapters=len(catalog.chapters) if catalog else 0,
    )
    return {
        "settings": s,
        "tuning": tuning,
        "catalog": catalog,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "memory_store": memory_store,
        "resource_repository": resource_repository,
        "pdf_extractor": pdf_extractor,
        "chunker": chunker,
        "ingestion_service": ingestion_service,
        "retriever": retriever,
        "memory": memory,
    }


async def startup(services: dict[str, Any]) -> None:
    """Prepare storage that needs async setup (the resource table)."""
    await services["resource_repository"].initialize()
