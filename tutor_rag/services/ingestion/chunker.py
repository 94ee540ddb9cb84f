"""Semantic chunking with an ordered strategy cascade.

The :class:`SemanticChunker` picks the first strategy that accepts the
document, in priority order:

1. **Problem labels** -- exercise sets with enough ``A1``-style labels are
   cut into one chunk per problem so a question about "A3" retrieves A3.
2. **Paragraphs** -- prose with blank-line breaks, packed up to the chunk
   size with a character overlap between neighbours.
3. **Sentences** -- a single block of text, degrading to punctuation
   "parts" and finally to fixed-size windows.

Input is expected to be :meth:`TextCleaner.normalize`-d so that paragraph
breaks are still present; each emitted chunk has its whitespace collapsed.
"""

from __future__ import annotations

import structlog

from tutor_rag.config.tuning import ChunkingConfig, LabelPolicy
from tutor_rag.models.rag import ChunkMetadata, ChunkType, TextChunk
from tutor_rag.services.ingestion.chunking_strategies import (
    ChunkingStrategy,
    ParagraphStrategy,
    Piece,
    ProblemLabelStrategy,
    SentenceStrategy,
    split_paragraphs,
)
from tutor_rag.services.ingestion.text_cleaner import TextCleaner
from tutor_rag.utils.problem_labels import find_problem_labels

logger = structlog.get_logger(logger_name=__name__)

_LABELLED_TYPES = frozenset({ChunkType.PROBLEM, ChunkType.PROBLEM_FRAGMENT})


class SemanticChunker:
    """Splits normalized document text into :class:`TextChunk` objects.

    Parameters
    ----------
    config:
        Character budgets (chunk size, overlap, min/max bounds).
    label_policy:
        When the problem-label strategy applies.  One policy is shared by
        every caller so the threshold cannot drift between call sites.
    """

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        label_policy: LabelPolicy | None = None,
    ) -> None:
        self._config = config or ChunkingConfig()
        self._label_policy = label_policy or LabelPolicy()
        sentence = SentenceStrategy(self._config)
        self._strategies: list[ChunkingStrategy] = [
            ProblemLabelStrategy(self._config, self._label_policy),
            ParagraphStrategy(self._config, sentence),
            sentence,
        ]

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, source_hint: str = "") -> list[TextChunk]:
        """Split *text* into chunks.

        Parameters
        ----------
        text:
            Normalized document text (paragraph breaks intact).
        source_hint:
            Source identifier, e.g. ``"12_Exercises"``.  Only consulted by
            a label policy that requires an exercise-set hint.

        Returns
        -------
        list[TextChunk]
            Chunks in document order.  Empty input returns an empty list.
        """
        if not text or not text.strip():
            return []

        strategy = self.select_strategy(text, source_hint)
        chunks = self._finalize(strategy.apply(text))

        logger.debug(
            "chunking_complete",
            strategy=strategy.name,
            num_chunks=len(chunks),
            avg_chars=sum(len(c.content) for c in chunks) // len(chunks) if chunks else 0,
            source=source_hint or None,
        )
        return chunks

    def select_strategy(self, text: str, source_hint: str = "") -> ChunkingStrategy:
        """Return the first strategy whose ``can_apply`` accepts *text*."""
        label_count = len(find_problem_labels(text))
        paragraph_count = len(split_paragraphs(text))
        for strategy in self._strategies:
            if strategy.can_apply(text, label_count, paragraph_count, source_hint):
                return strategy
        # SentenceStrategy accepts any non-empty text.
        return self._strategies[-1]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _finalize(self, pieces: list[Piece]) -> list[TextChunk]:
        """Collapse whitespace and build chunks without losing any text.

        A non-final piece below ``min_chunk_size`` is prefixed to the next
        piece, or appended to the previous chunk, whichever stays within
        ``max_chunk_size``.  If neither fits it is kept as it is.
        """
        cfg = self._config
        collapsed = [(TextCleaner.collapse_whitespace(p.text), p) for p in pieces]
        collapsed = [(content, piece) for content, piece in collapsed if content]

        chunks: list[TextChunk] = []
        carry = ""
        for position, (content, piece) in enumerate(collapsed):
            if carry:
                content = f"{carry} {content}"
                carry = ""
            is_last = position == len(collapsed) - 1
            if len(content) < cfg.min_chunk_size and not is_last:
                following = collapsed[position + 1][0]
                if len(content) + 1 + len(following) <= cfg.max_chunk_size:
                    carry = content
                    continue
                if chunks and len(chunks[-1].content) + 1 + len(content) <= cfg.max_chunk_size:
                    previous = chunks[-1]
                    chunks[-1] = TextChunk(content=f"{previous.content} {content}", metadata=previous.metadata)
                    continue
                logger.debug("chunk_below_minimum_kept", chars=len(content), chunk_type=piece.chunk_type.value)
            label = piece.problem_label if piece.chunk_type in _LABELLED_TYPES else None
            chunks.append(
                TextChunk(
                    content=content,
                    metadata=ChunkMetadata(chunk_type=piece.chunk_type, problem_label=label),
                )
            )
        return chunks
