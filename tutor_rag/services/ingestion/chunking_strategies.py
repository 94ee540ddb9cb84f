"""Chunking strategies, tried in priority order by the chunker.

Each strategy answers :meth:`ChunkingStrategy.can_apply` from cheap
document statistics and produces :class:`Piece` objects from
:meth:`ChunkingStrategy.apply`:

1. :class:`ProblemLabelStrategy` -- exercise sets, one chunk per labelled
   problem.
2. :class:`ParagraphStrategy` -- prose with blank-line paragraphs.
3. :class:`SentenceStrategy` -- a single block of text; degrades to
   :class:`PartStrategy` and then :class:`FixedSizeStrategy` when there is
   no sentence punctuation to split on.

Sizes are characters of whitespace-collapsed text, which is what the chunker
finally emits.  Strategies never drop text: undersized pieces are
carried into a neighbour, and only a whole document shorter than the
minimum chunk size produces nothing.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from tutor_rag.config.tuning import ChunkingConfig, LabelPolicy
from tutor_rag.models.rag import ChunkType
from tutor_rag.services.ingestion.text_cleaner import TextCleaner
from tutor_rag.utils.problem_labels import find_problem_labels

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_PART_BREAK = re.compile(r"[.!?\n]+")

# A fixed-size window backs off to the last whitespace only when that
# keeps at least this share of the window.
_WORD_BACKOFF_RATIO = 0.7


@dataclass(frozen=True)
class Piece:
    """A chunk before whitespace collapsing and model conversion."""

    text: str
    chunk_type: ChunkType
    problem_label: str | None = None


def split_paragraphs(text: str) -> list[str]:
    """Split *text* on blank lines, discarding empty paragraphs."""
    return [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]


def split_sentences(text: str) -> list[str]:
    """Split after ``.``, ``!`` or ``?`` followed by whitespace."""
    return [s.strip() for s in _SENTENCE_BREAK.split(text) if s.strip()]


def collapsed_length(text: str) -> int:
    """Length of *text* once every whitespace run is a single space."""
    return len(TextCleaner.collapse_whitespace(text))


class ChunkingStrategy(ABC):
    """One way of cutting a document into chunks."""

    name: str = "abstract"

    def __init__(self, config: ChunkingConfig) -> None:
        self._config = config

    @abstractmethod
    def can_apply(
        self,
        text: str,
        label_count: int,
        paragraph_count: int,
        source_hint: str = "",
    ) -> bool:
        """Return ``True`` if this strategy should handle *text*."""

    @abstractmethod
    def apply(self, text: str) -> list[Piece]:
        """Cut *text* into pieces."""

    # ------------------------------------------------------------------
    # Shared accumulation
    # ------------------------------------------------------------------

    def _accumulate(
        self,
        units: list[str],
        separator: str,
        chunk_type: ChunkType,
        oversize: Callable[[str], list[Piece]],
        problem_label: str | None = None,
        overlap: bool = True,
    ) -> list[Piece]:
        """Pack *units* into pieces.

        * Adding a unit that would exceed ``max_chunk_size`` flushes the
          buffer and seeds the next one with the buffer's tail (overlap).
        * A buffer reaching ``chunk_size`` is flushed as is.
        * Units longer than ``max_chunk_size`` go to *oversize*.
        * A short final remainder joins the previous piece when that stays
          within ``max_chunk_size``.
        """
        cfg = self._config
        pieces: list[Piece] = []
        buffer = ""

        def emit(text: str) -> None:
            if text.strip():
                pieces.append(Piece(text.strip(), chunk_type, problem_label))

        for unit in units:
            if collapsed_length(unit) > cfg.max_chunk_size:
                if buffer and collapsed_length(buffer) < cfg.min_chunk_size:
                    unit = f"{buffer}{separator}{unit}"
                else:
                    emit(buffer)
                buffer = ""
                pieces.extend(oversize(unit))
                continue

            joined = f"{buffer}{separator}{unit}" if buffer else unit
            if buffer and collapsed_length(joined) > cfg.max_chunk_size:
                if collapsed_length(buffer) < cfg.min_chunk_size:
                    pieces.extend(oversize(joined))
                    buffer = ""
                    continue
                flushed = buffer
                emit(flushed)
                seed = _overlap_tail(flushed, cfg.chunk_overlap) if overlap else ""
                seeded = f"{seed}{separator}{unit}"
                buffer = seeded if seed and collapsed_length(seeded) <= cfg.max_chunk_size else unit
            else:
                buffer = joined

            if collapsed_length(buffer) >= cfg.chunk_size:
                emit(buffer)
                buffer = ""

        self._finish(pieces, buffer, separator, chunk_type, problem_label)
        return pieces

    def _finish(
        self,
        pieces: list[Piece],
        remainder: str,
        separator: str,
        chunk_type: ChunkType,
        problem_label: str | None,
    ) -> None:
        tail = remainder.strip()
        if not tail:
            return
        cfg = self._config
        if collapsed_length(tail) >= cfg.min_chunk_size:
            pieces.append(Piece(tail, chunk_type, problem_label))
        elif pieces:
            last = pieces[-1]
            merged = f"{last.text}{separator}{tail}"
            if collapsed_length(merged) <= cfg.max_chunk_size:
                pieces[-1] = Piece(merged, last.chunk_type, last.problem_label)
            else:
                pieces.append(Piece(tail, chunk_type, problem_label))


# ---------------------------------------------------------------------------
# Last resorts
# ---------------------------------------------------------------------------

class FixedSizeStrategy(ChunkingStrategy):
    """Slide a ``chunk_size`` window, backing off to whitespace near the end."""

    name = "fixed-size"

    def can_apply(self, text: str, label_count: int, paragraph_count: int, source_hint: str = "") -> bool:
        return bool(text.strip())

    def apply(self, text: str) -> list[Piece]:
        return self.windows(text, ChunkType.FIXED_SIZE)

    def windows(self, text: str, chunk_type: ChunkType, problem_label: str | None = None) -> list[Piece]:
        size = self._config.chunk_size
        pieces: list[Piece] = []
        start = 0
        length = len(text)
        while start < length:
            end = min(start + size, length)
            next_start = end
            if end < length:
                cut = max(text.rfind(" ", start, end), text.rfind("\n", start, end))
                if cut > start + size * _WORD_BACKOFF_RATIO:
                    end = cut
                    next_start = cut + 1
            window = text[start:end].strip()
            start = next_start
            if not window:
                continue
            if start >= length:
                self._finish(pieces, window, " ", chunk_type, problem_label)
            else:
                pieces.append(Piece(window, chunk_type, problem_label))
        return pieces


class PartStrategy(ChunkingStrategy):
    """Split on any ``.``, ``!``, ``?`` or newline; glue short fragments."""

    name = "part"

    def __init__(self, config: ChunkingConfig, fixed_size: FixedSizeStrategy) -> None:
        super().__init__(config)
        self._fixed_size = fixed_size

    def can_apply(self, text: str, label_count: int, paragraph_count: int, source_hint: str = "") -> bool:
        return len(self.parts(text)) > 1

    def apply(self, text: str) -> list[Piece]:
        return self._accumulate(
            self.parts(text),
            separator=". ",
            chunk_type=ChunkType.PART,
            oversize=lambda unit: self._fixed_size.windows(unit, ChunkType.PART),
        )

    def parts(self, text: str) -> list[str]:
        """Fragments of at least ``min_part_length`` characters.

        A shorter fragment is prefixed to the next one instead of being
        dropped.
        """
        minimum = self._config.min_part_length
        parts: list[str] = []
        pending = ""
        for fragment in _PART_BREAK.split(text):
            fragment = fragment.strip()
            if not fragment:
                continue
            if pending:
                fragment = f"{pending}. {fragment}"
            if len(fragment) < minimum:
                pending = fragment
                continue
            parts.append(fragment)
            pending = ""
        if pending:
            if parts:
                parts[-1] = f"{parts[-1]}. {pending}"
            else:
                parts.append(pending)
        return parts


# ---------------------------------------------------------------------------
# Prose
# ---------------------------------------------------------------------------

class SentenceStrategy(ChunkingStrategy):
    """Sentence-level packing for text that is effectively one paragraph."""

    name = "sentence"

    def __init__(self, config: ChunkingConfig) -> None:
        super().__init__(config)
        self._fixed_size = FixedSizeStrategy(config)
        self._parts = PartStrategy(config, self._fixed_size)

    def can_apply(self, text: str, label_count: int, paragraph_count: int, source_hint: str = "") -> bool:
        return bool(text.strip())

    def apply(self, text: str) -> list[Piece]:
        sentences = split_sentences(text)
        if len(sentences) > 1:
            return self._accumulate(
                sentences,
                separator=" ",
                chunk_type=ChunkType.SENTENCE,
                oversize=lambda unit: self._fixed_size.windows(unit, ChunkType.SENTENCE),
            )
        if self._parts.can_apply(text, 0, 1):
            return self._parts.apply(text)
        return self._fixed_size.apply(text)


class ParagraphStrategy(ChunkingStrategy):
    """Pack blank-line paragraphs, with overlap between neighbours."""

    name = "paragraph"

    def __init__(self, config: ChunkingConfig, sentence: SentenceStrategy) -> None:
        super().__init__(config)
        self._sentence = sentence

    def can_apply(self, text: str, label_count: int, paragraph_count: int, source_hint: str = "") -> bool:
        return paragraph_count > 1

    def apply(self, text: str) -> list[Piece]:
        return self._accumulate(
            split_paragraphs(text),
            separator="\n\n",
            chunk_type=ChunkType.PARAGRAPH,
            oversize=self._sentence.apply,
        )


# ---------------------------------------------------------------------------
# Exercise sets
# ---------------------------------------------------------------------------

class ProblemLabelStrategy(ChunkingStrategy):
    """One chunk per labelled problem (``A1``, ``A2``, ...).

    Each label owns the text from its own position up to the next label.
    Text before the first label becomes a ``content`` chunk.  A problem
    longer than ``max_chunk_size`` is split at sentences into
    ``problem-fragment`` chunks that keep the label; one shorter than
    ``min_chunk_size`` is carried into the next problem's chunk, which
    takes the label of whichever problem contributes more text.
    """

    name = "problem-label"

    def __init__(self, config: ChunkingConfig, policy: LabelPolicy) -> None:
        super().__init__(config)
        self._policy = policy
        self._fixed_size = FixedSizeStrategy(config)

    def can_apply(self, text: str, label_count: int, paragraph_count: int, source_hint: str = "") -> bool:
        return self._policy.applies(label_count, source_hint)

    def apply(self, text: str) -> list[Piece]:
        cfg = self._config
        labels = find_problem_labels(text)
        if not labels:
            return []

        pieces: list[Piece] = []
        pending = ""
        pending_label: str | None = None

        preamble = text[: labels[0].position].strip()
        if collapsed_length(preamble) >= cfg.min_chunk_size:
            pieces.extend(self._split(preamble, ChunkType.CONTENT, None))
        else:
            pending = preamble

        for i, match in enumerate(labels):
            end = labels[i + 1].position if i + 1 < len(labels) else len(text)
            section = text[match.position : end].strip()
            owner = match.label
            if pending:
                # The merged chunk is labelled by whichever problem owns more of it.
                if pending_label and collapsed_length(pending) > collapsed_length(section):
                    owner = pending_label
                section = f"{pending} {section}".strip()
                pending, pending_label = "", None

            size = collapsed_length(section)
            if size > cfg.max_chunk_size:
                pieces.extend(self._split(section, ChunkType.PROBLEM_FRAGMENT, owner))
            elif size >= cfg.min_chunk_size:
                pieces.append(Piece(section, ChunkType.PROBLEM, owner))
            else:
                pending, pending_label = section, owner

        self._finish(pieces, pending, " ", ChunkType.PROBLEM, pending_label)
        return pieces

    def _split(self, text: str, chunk_type: ChunkType, label: str | None) -> list[Piece]:
        """Sentence-pack an oversized problem without overlap."""
        if collapsed_length(text) <= self._config.max_chunk_size:
            return [Piece(text, chunk_type, label)]
        return self._accumulate(
            split_sentences(text),
            separator=" ",
            chunk_type=chunk_type,
            oversize=lambda unit: self._fixed_size.windows(unit, chunk_type, label),
            problem_label=label,
            overlap=False,
        )


def _overlap_tail(text: str, size: int) -> str:
    """Last *size* characters of *text*, starting at a word boundary."""
    if size <= 0:
        return ""
    if len(text) <= size:
        return text.strip()
    tail = text[-size:]
    space = tail.find(" ")
    if 0 <= space < len(tail) - 1:
        tail = tail[space + 1 :]
    return tail.strip()
