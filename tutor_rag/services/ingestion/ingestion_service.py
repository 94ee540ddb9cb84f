"""Orchestrator for the PDF ingestion pipeline.

Pipeline stages: **extract -> normalize -> chunk -> embed -> store**.

The :class:`IngestionService` coordinates its collaborators without any of
them knowing about each other:

    1. IPDFTextExtractor -- raw text from PDF bytes
    2. TextCleaner -- line endings, hyphenation, blank-line paragraphs
    3. SemanticChunker -- strategy cascade, whitespace collapsed per chunk
    4. IEmbeddingProvider -- one call per chunk, bounded retry with backoff
    5. IResourceRepository + IVectorStoreProvider -- Resource rows and
       their embeddings, tagged with the source id and a sequential
       chunk index

Re-ingesting a source deletes every existing record for it first.  That
replace is not transactional: a concurrent query may briefly see the
source empty or partially written.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from pathlib import Path

import structlog

from tutor_rag.config.tuning import RetryConfig
from tutor_rag.interfaces.embedding_provider import IEmbeddingProvider
from tutor_rag.interfaces.pdf_text_extractor import IPDFTextExtractor
from tutor_rag.interfaces.resource_repository import IResourceRepository
from tutor_rag.interfaces.vector_store_provider import IVectorStoreProvider
from tutor_rag.models.catalog import Chapter, CourseCatalog
from tutor_rag.models.rag import CorpusStats, Embedding, IngestionResult, Resource, TextChunk
from tutor_rag.services.ingestion.chunker import SemanticChunker
from tutor_rag.services.ingestion.text_cleaner import TextCleaner
from tutor_rag.utils.errors import (
    ConfigurationError,
    EmbeddingError,
    ExtractionError,
    IngestError,
    StoreError,
    TutorRAGError,
)

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Turns course PDFs into searchable records.

    Parameters
    ----------
    pdf_extractor:
        Extracts text from PDF bytes.
    chunker:
        Splits normalized text into chunks.
    embedding_provider:
        Generates one vector per chunk.
    vector_store:
        Stores the embeddings used for nearest-neighbour search.
    resource_repository:
        Stores the Resource rows used by the lexical fallback.
    retry:
        Attempts and backoff for per-chunk embedding calls.
    catalog:
        Course catalog; required by :meth:`ingest_chapter` and
        :meth:`ingest_catalog`.
    content_dir:
        Directory holding the catalog's PDF files.
    cleaner:
        Text normalizer; a default :class:`TextCleaner` when omitted.
    """

    def __init__(
        self,
        pdf_extractor: IPDFTextExtractor,
        chunker: SemanticChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        resource_repository: IResourceRepository,
        retry: RetryConfig | None = None,
        catalog: CourseCatalog | None = None,
        content_dir: str | Path = "./public/content",
        cleaner: TextCleaner | None = None,
    ) -> None:
        self._pdf_extractor = pdf_extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._resource_repository = resource_repository
        self._retry = retry or RetryConfig()
        self._catalog = catalog
        self._content_dir = Path(content_dir)
        self._cleaner = cleaner or TextCleaner()

    # ------------------------------------------------------------------
    # Single documents
    # ------------------------------------------------------------------

    async def ingest(self, pdf_bytes: bytes, source_id: str) -> IngestionResult:
        """Ingest one PDF under *source_id*, replacing any previous records.

        Returns
        -------
        IngestionResult
            ``chunks_created`` is the number of persisted chunks.

        Raises
        ------
        IngestError
            If the PDF cannot be read, yields no chunks, or no chunk
            survives embedding.
        StoreError
            If either store rejects the delete or the write.
        """
        start = time.monotonic()

        try:
            raw_text = self._pdf_extractor.extract_text(pdf_bytes)
        except ExtractionError as exc:
            raise IngestError(
                message=f"Cannot extract text from {source_id}: {exc.message}",
                provider_name=exc.provider_name,
                source_id=source_id,
            ) from exc

        normalized = self._cleaner.normalize(raw_text)
        chunks = self._chunker.chunk(normalized, source_hint=source_id)
        if not chunks:
            raise IngestError(message=f"No text chunks produced for {source_id}", source_id=source_id)

        replaced = await self.purge_sources([source_id])

        embedded: list[tuple[TextChunk, list[float]]] = []
        for position, chunk in enumerate(chunks):
            vector = await self._embed_with_retry(chunk, source_id, position)
            if vector is not None:
                embedded.append((chunk, vector))

        dropped = len(chunks) - len(embedded)
        if not embedded:
            raise IngestError(
                message=f"All {len(chunks)} chunks of {source_id} failed to embed",
                source_id=source_id,
            )

        stored = await self._store(embedded, source_id)
        result = IngestionResult(
            source_id=source_id,
            chunks_created=stored,
            chunks_dropped=dropped,
            records_replaced=replaced,
            ingestion_time=round(time.monotonic() - start, 2),
        )
        logger.info(
            "ingestion_complete",
            source=source_id,
            chunks=stored,
            dropped=dropped,
            replaced=replaced,
            time_s=result.ingestion_time,
        )
        return result

    async def ingest_file(self, path: str | Path, source_id: str | None = None) -> IngestionResult:
        """Read a PDF from disk and :meth:`ingest` it.

        The source id defaults to the file name without extension.
        """
        file_path = Path(path)
        source_id = source_id or file_path.stem
        try:
            data = file_path.read_bytes()
        except OSError as exc:
            raise IngestError(message=f"Cannot read {file_path}: {exc}", source_id=source_id) from exc
        return await self.ingest(data, source_id)

    # ------------------------------------------------------------------
    # Batch ingestion
    # ------------------------------------------------------------------

    async def ingest_chapter(self, chapter_id: str) -> list[IngestionResult]:
        """Re-ingest every source of one catalog chapter.

        All records of the chapter's sources are deleted up front.  Files
        missing from the content directory are skipped with a warning; a
        document that fails is logged and reported as a failed result.

        Raises
        ------
        ConfigurationError
            If no catalog was given or *chapter_id* is not in it.
        """
        chapter = self._require_chapter(chapter_id)
        start = time.monotonic()

        removed = await self.purge_sources(chapter.source_ids)
        logger.info("chapter_purged", chapter=chapter_id, sources=len(chapter.sources), removed=removed)

        results: list[IngestionResult] = []
        for source_id, filename in chapter.sources.items():
            pdf_path = self._content_dir / filename
            if not pdf_path.is_file():
                logger.warning("source_file_missing", chapter=chapter_id, source=source_id, path=str(pdf_path))
                continue
            try:
                results.append(await self.ingest_file(pdf_path, source_id))
            except IngestError as exc:
                logger.error("document_ingestion_failed", chapter=chapter_id, source=source_id, error=str(exc))
                results.append(self._failed_result(source_id, exc))

        logger.info(
            "chapter_ingestion_complete",
            chapter=chapter_id,
            documents=len(results),
            chunks=sum(r.chunks_created for r in results),
            time_s=round(time.monotonic() - start, 2),
        )
        return results

    async def ingest_catalog(self) -> list[IngestionResult]:
        """Ingest every chapter in catalog order, continuing past failures."""
        catalog = self._require_catalog()
        results: list[IngestionResult] = []
        for chapter_id in catalog.chapter_ids:
            try:
                results.extend(await self.ingest_chapter(chapter_id))
            except TutorRAGError as exc:
                logger.error("chapter_ingestion_failed", chapter=chapter_id, error=str(exc))

        logger.info(
            "catalog_ingestion_complete",
            chapters=len(catalog.chapters),
            documents=len(results),
            failed=sum(1 for r in results if not r.succeeded),
            chunks=sum(r.chunks_created for r in results),
        )
        return results

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def purge_sources(self, sources: list[str]) -> int:
        """Delete every Resource and embedding of *sources*.

        Returns the number of embeddings removed.
        """
        if not sources:
            return 0
        removed = await self._vector_store.delete_where({"source": {"$in": list(sources)}})
        await self._resource_repository.delete_by_sources(list(sources))
        if removed:
            logger.debug("sources_purged", sources=list(sources), removed=removed)
        return removed

    async def get_corpus_stats(self) -> CorpusStats:
        """Return aggregate statistics about the vector-store corpus."""
        return await self._vector_store.get_stats()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_with_retry(self, chunk: TextChunk, source_id: str, position: int) -> list[float] | None:
        """Embed one chunk, retrying with exponential backoff.

        Returns ``None`` once every attempt has failed.
        """
        attempts = self._retry.attempts
        for attempt in range(1, attempts + 1):
            try:
                return await self._embedding_provider.embed_single(chunk.content)
            except EmbeddingError as exc:
                if attempt == attempts:
                    logger.warning(
                        "chunk_embedding_failed",
                        source=source_id,
                        position=position,
                        attempts=attempts,
                        error=str(exc),
                    )
                    return None
                delay = self._retry.delay_for(attempt)
                logger.info(
                    "chunk_embedding_retry",
                    source=source_id,
                    position=position,
                    attempt=attempt,
                    delay_s=delay,
                    error=str(exc),
                )
                await asyncio.sleep(delay)
        return None

    async def _store(self, embedded: list[tuple[TextChunk, list[float]]], source_id: str) -> int:
        resources: list[Resource] = []
        embeddings: list[Embedding] = []
        for chunk_index, (chunk, vector) in enumerate(embedded):
            resource = Resource(
                id=str(uuid.uuid4()),
                content=chunk.content,
                source=source_id,
                chunk_index=chunk_index,
                metadata=chunk.metadata,
            )
            resources.append(resource)
            embeddings.append(
                Embedding(
                    id=str(uuid.uuid4()),
                    resource_id=resource.id,
                    content=resource.content,
                    source=source_id,
                    chunk_index=chunk_index,
                    metadata=chunk.metadata,
                    embedding=vector,
                    created_at=resource.created_at,
                )
            )

        await self._resource_repository.add_resources(resources)
        try:
            return await self._vector_store.upsert_many([e.to_vector_record() for e in embeddings])
        except StoreError:
            # Resource rows without embeddings would only surface through the lexical fallback.
            await self._resource_repository.delete_by_sources([source_id])
            logger.error("embedding_write_failed", source=source_id, resources_removed=len(resources))
            raise

    def _require_catalog(self) -> CourseCatalog:
        if self._catalog is None:
            raise ConfigurationError(message="No course catalog configured")
        return self._catalog

    def _require_chapter(self, chapter_id: str) -> Chapter:
        chapter = self._require_catalog().get(chapter_id)
        if chapter is None:
            raise ConfigurationError(message=f"Unknown chapter: {chapter_id}")
        return chapter

    @staticmethod
    def _failed_result(source_id: str, exc: TutorRAGError) -> IngestionResult:
        """Return an :class:`IngestionResult` recording a failed document."""
        return IngestionResult(source_id=source_id, chunks_created=0, error=str(exc))
