"""Thread-scoped long-term conversation memory.

Each chat turn is embedded and kept in its own vector-store collection,
tagged with the thread it belongs to.  On a new question the most similar
earlier turns of the same thread are recalled, so the tutor can refer back
to what was said many turns ago without replaying the whole history.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog

from tutor_rag.config.tuning import MemoryConfig
from tutor_rag.interfaces.embedding_provider import IEmbeddingProvider
from tutor_rag.interfaces.vector_store_provider import IVectorStoreProvider
from tutor_rag.models.rag import MemoryHit, VectorRecord

logger = structlog.get_logger(logger_name=__name__)

_ROLES = frozenset({"user", "assistant"})


class ConversationMemory:
    """Remembers and recalls chat turns per thread.

    Parameters
    ----------
    embedding_provider:
        Embeds turns and recall queries.
    vector_store:
        A store dedicated to memory; never the course-content store.
    config:
        Recall limit and candidate pool size.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        config: MemoryConfig | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._config = config or MemoryConfig()

    async def remember(self, thread_id: str, role: str, content: str, turn: int) -> str | None:
        """Embed and store one turn.  Returns the record id, ``None`` for blank text."""
        if role not in _ROLES:
            raise ValueError(f"role must be one of {sorted(_ROLES)}, got {role!r}")
        if not content.strip():
            return None

        vector = await self._embedding_provider.embed_single(content)
        record_id = str(uuid.uuid4())
        await self._vector_store.upsert_many(
            [
                VectorRecord(
                    record_id=record_id,
                    content=content,
                    embedding=vector,
                    metadata={
                        "thread_id": thread_id,
                        "role": role,
                        "turn": turn,
                        "created_at": datetime.now(timezone.utc).isoformat(),
                    },
                )
            ]
        )
        logger.debug("memory_stored", thread_id=thread_id, role=role, turn=turn)
        return record_id

    async def remember_exchange(self, thread_id: str, user_text: str, assistant_text: str) -> int:
        """Store a user turn and the assistant's reply.

        Turns are numbered per thread, continuing from what is stored.
        Returns the turn number given to the user message.
        """
        turn = await self._vector_store.count({"thread_id": thread_id}) + 1
        await self.remember(thread_id, "user", user_text, turn)
        await self.remember(thread_id, "assistant", assistant_text, turn + 1)
        return turn

    async def recall(self, thread_id: str, query: str, limit: int | None = None) -> list[MemoryHit]:
        """Return the earlier turns of *thread_id* most similar to *query*."""
        if not query.strip():
            return []
        thread_filter = {"thread_id": thread_id}
        if await self._vector_store.count(thread_filter) == 0:
            return []

        query_vector = await self._embedding_provider.embed_single(query)
        hits = await self._vector_store.nearest_neighbors(
            query_vector,
            k=limit or self._config.recall_limit,
            num_candidates=self._config.num_candidates,
            filters=thread_filter,
        )
        recalled = [
            MemoryHit(
                thread_id=thread_id,
                role=str(hit.metadata.get("role", "user")),
                turn=int(hit.metadata.get("turn", 0)),
                content=hit.content,
                similarity=hit.score,
            )
            for hit in hits
            if hit.metadata.get("thread_id") == thread_id
        ]
        logger.debug("memory_recalled", thread_id=thread_id, hits=len(recalled))
        return recalled

    async def forget(self, thread_id: str) -> int:
        """Delete every stored turn of *thread_id*."""
        removed = await self._vector_store.delete_where({"thread_id": thread_id})
        logger.info("memory_forgotten", thread_id=thread_id, removed=removed)
        return removed

    @staticmethod
    def format_context(hits: list[MemoryHit]) -> str:
        """Render recalled turns as ``[role] content`` lines for a prompt."""
        return "\n".join(f"[{hit.role}] {hit.content}" for hit in hits)
