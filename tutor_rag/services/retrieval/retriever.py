"""Query-time retrieval over the course corpus.

:meth:`Retriever.find_relevant_content` runs the full query path:

1. Empty vector store -> lexical fallback.
2. Embed the query and detect a problem label ("What is A1?").
3. Over-fetch nearest neighbours (wider when a label was detected),
   restricted to the requested sources.
4. Re-rank with label boosting (see :mod:`label_boosting`).
5. Take the top ``limit`` hits, forcing in the chunk that follows a
   tail-positioned label so the caller receives the problem statement.
6. If an unfiltered vector search returned nothing at all, fall back to a
   lexical substring search with a fixed placeholder similarity.  A source
   filter that excludes every hit yields an empty result instead.

The retriever holds no mutable state; concurrent calls never interfere.
Embedding and store failures propagate to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np
import structlog

from tutor_rag.config.tuning import RetrievalConfig
from tutor_rag.interfaces.embedding_provider import IEmbeddingProvider
from tutor_rag.interfaces.resource_repository import IResourceRepository
from tutor_rag.interfaces.vector_store_provider import IVectorStoreProvider
from tutor_rag.models.rag import SearchHit
from tutor_rag.providers.vector_store.memory_provider import cosine_similarities
from tutor_rag.services.retrieval.label_boosting import (
    boost_label_hits,
    clamp_similarity,
    following_index,
    include_following,
    locate_label,
    top_label_anchor,
)
from tutor_rag.utils.problem_labels import first_problem_label

logger = structlog.get_logger(logger_name=__name__)


class Retriever:
    """Ranks course chunks for a student query.

    Parameters
    ----------
    embedding_provider:
        Embeds the query; must match the model used at ingestion.
    vector_store:
        Holds the chunk embeddings.
    resource_repository:
        Backs the lexical fallback.
    config:
        Over-fetch sizes and the fallback similarity.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        resource_repository: IResourceRepository,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._resource_repository = resource_repository
        self._config = config or RetrievalConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def find_relevant_content(
        self,
        query: str,
        limit: int = 4,
        sources: Iterable[str] | None = None,
    ) -> list[SearchHit]:
        """Return up to *limit* hits for *query*, best first.

        Parameters
        ----------
        query:
            The student's question.
        limit:
            Maximum number of hits.
        sources:
            Restrict results to these source ids.  ``None`` or an empty
            collection searches the whole corpus.

        Raises
        ------
        EmbeddingError
            If the query cannot be embedded.
        StoreError
            If the vector store or resource repository fails.
        """
        if limit <= 0 or not query.strip():
            return []
        source_set = set(sources) if sources else None

        if await self._vector_store.count() == 0:
            logger.info("retrieval_lexical_fallback", reason="empty_vector_store")
            return await self._lexical_search(query, limit, source_set)

        query_vector = await self._embedding_provider.embed_single(query)
        label = first_problem_label(query)
        fetch_size = self._config.fetch_size(limit, label is not None)
        filters = {"source": {"$in": sorted(source_set)}} if source_set else None

        raw_hits = await self._vector_store.nearest_neighbors(
            query_vector,
            k=fetch_size,
            num_candidates=self._config.num_candidates,
            filters=filters,
        )
        if not raw_hits:
            if source_set is not None:
                # The store is not empty, so the filter excluded every hit.
                logger.debug("retrieval_filtered_empty", sources=sorted(source_set))
                return []
            logger.info("retrieval_lexical_fallback", reason="no_vector_hits")
            return await self._lexical_search(query, limit, source_set)

        hits = [SearchHit.from_vector_hit(hit) for hit in raw_hits]
        if source_set is not None:
            hits = [hit for hit in hits if hit.source in source_set]
        if not hits:
            logger.debug("retrieval_filtered_empty", sources=sorted(source_set or ()))
            return []

        if label is None:
            results = hits[:limit]
        else:
            hits = boost_label_hits(hits, label)
            results = await self._select_with_following(hits, label, limit, query_vector)

        logger.debug(
            "retrieval_complete",
            query_len=len(query),
            label=label,
            candidates=len(raw_hits),
            returned=len(results),
        )
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _select_with_following(
        self,
        hits: list[SearchHit],
        label: str,
        limit: int,
        query_vector: list[float],
    ) -> list[SearchHit]:
        """Top *limit* hits, plus the chunk after a tail-positioned label."""
        selected = hits[:limit]
        anchor_index = top_label_anchor(selected, label)
        if anchor_index is None:
            return selected

        anchor = selected[anchor_index]
        placement = locate_label(label, anchor.content)
        if placement is None or not placement.near_end:
            return selected

        following: SearchHit | None = None
        # selected is a prefix of hits, so indices agree.
        follower = following_index(hits, anchor_index)
        if follower is not None:
            following = hits[follower]
        elif anchor.source is not None and anchor.chunk_index is not None:
            following = await self._fetch_following(anchor, query_vector)

        if following is None:
            return selected

        logger.debug(
            "label_following_included",
            label=label,
            source=following.source,
            chunk_index=following.chunk_index,
        )
        return include_following(selected, anchor_index, following, limit)

    async def _fetch_following(self, anchor: SearchHit, query_vector: list[float]) -> SearchHit | None:
        """Load the chunk after *anchor* from the store and score it."""
        records = await self._vector_store.get_records(
            {"source": anchor.source, "chunk_index": anchor.chunk_index + 1},
            limit=1,
        )
        if not records:
            return None
        record = records[0]
        score = cosine_similarities(
            np.asarray(query_vector, dtype=np.float64),
            np.asarray([record.embedding], dtype=np.float64),
        )[0]
        meta = record.metadata
        return SearchHit(
            content=record.content,
            similarity=clamp_similarity(float(score)),
            resource_id=str(meta.get("resource_id") or record.record_id),
            source=anchor.source,
            chunk_index=anchor.chunk_index + 1,
            problem_label=meta.get("problem_label"),  # type: ignore[arg-type]
        )

    async def _lexical_search(
        self,
        query: str,
        limit: int,
        sources: set[str] | None,
    ) -> list[SearchHit]:
        tokens = [t for t in query.split() if len(t) >= self._config.lexical_min_token_length]
        if not tokens:
            return []
        resources = await self._resource_repository.lexical_search(
            tokens,
            limit=limit,
            sources=sorted(sources) if sources is not None else None,
        )
        return [
            SearchHit(
                content=resource.content,
                similarity=self._config.lexical_similarity,
                resource_id=resource.id,
                source=resource.source,
                chunk_index=resource.chunk_index,
                problem_label=resource.metadata.problem_label,
            )
            for resource in resources
        ]
