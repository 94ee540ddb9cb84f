"""Problem-label re-ranking for retrieval candidates.

Students ask about exercises by label ("What is A1?").  Pure cosine
similarity ranks the chunk *mentioning* A1 well, but when the label sits
at the tail of a chunk the actual problem statement lives in the next
chunk.  The functions here raise the scores of label-bearing hits and of
the hit that follows them, then re-sort.

The weights are empirical.  Tests pin the ordering they induce and the
1.0 ceiling, not the exact numbers.
"""

from __future__ import annotations

from dataclasses import dataclass

from tutor_rag.models.rag import SearchHit
from tutor_rag.utils.problem_labels import label_position, next_sequential_label

# Label found in the first EARLY_FRACTION of a chunk.
LABEL_EARLY_BOOST = 0.35
# Label found in the tail; the statement probably continues in the next chunk.
LABEL_LATE_BOOST = 0.25
# Hit following a label that sat in the tail of its chunk.
FOLLOWING_AFTER_LATE_BOOST = 0.25
# Hit following a label hit that does not open with the next label.
FOLLOWING_CONTINUATION_BOOST = 0.2

EARLY_FRACTION = 0.7
NEXT_LABEL_WINDOW = 150
MAX_SIMILARITY = 1.0


@dataclass(frozen=True)
class LabelPlacement:
    """Where a label occurs inside a chunk."""

    position: int
    fraction: float

    @property
    def near_end(self) -> bool:
        return self.fraction >= EARLY_FRACTION


def locate_label(label: str, content: str) -> LabelPlacement | None:
    """Return the placement of *label* in *content*, or ``None``."""
    position = label_position(label, content)
    if position is None:
        return None
    fraction = position / len(content) if content else 0.0
    return LabelPlacement(position=position, fraction=fraction)


def clamp_similarity(score: float) -> float:
    return min(MAX_SIMILARITY, max(0.0, score))


def is_following(anchor: SearchHit, candidate: SearchHit) -> bool:
    """``True`` if *candidate* is the chunk right after *anchor* in its source."""
    if anchor.source is None or anchor.chunk_index is None:
        return False
    return candidate.source == anchor.source and candidate.chunk_index == anchor.chunk_index + 1


def following_index(hits: list[SearchHit], index: int) -> int | None:
    """Index of the hit that follows ``hits[index]``.

    Uses ``source``/``chunk_index`` adjacency when the anchor carries that
    metadata; otherwise the next hit in rank order.
    """
    anchor = hits[index]
    if anchor.source is not None and anchor.chunk_index is not None:
        for candidate_index, candidate in enumerate(hits):
            if candidate_index != index and is_following(anchor, candidate):
                return candidate_index
        return None
    return index + 1 if index + 1 < len(hits) else None


def opens_with_next_label(content: str, label: str) -> bool:
    """``True`` if the label after *label* appears early in *content*."""
    successor = next_sequential_label(label)
    if successor is None:
        return False
    return label_position(successor, content[:NEXT_LABEL_WINDOW]) is not None


def boost_label_hits(hits: list[SearchHit], label: str) -> list[SearchHit]:
    """Boost label-bearing hits and their followers, then stable re-sort.

    Parameters
    ----------
    hits:
        Candidates in the vector store's rank order.
    label:
        Problem label detected in the query, e.g. ``"A1"``.

    Returns
    -------
    list[SearchHit]
        New hit objects ordered by boosted similarity, descending.  Equal
        scores keep their incoming order.
    """
    scores = [hit.similarity for hit in hits]
    placements = [locate_label(label, hit.content) for hit in hits]

    for index, placement in enumerate(placements):
        if placement is None:
            continue
        boost = LABEL_LATE_BOOST if placement.near_end else LABEL_EARLY_BOOST
        scores[index] = clamp_similarity(scores[index] + boost)

    for index, placement in enumerate(placements):
        if placement is None:
            continue
        follower = following_index(hits, index)
        if follower is None:
            continue
        if placement.near_end:
            scores[follower] = clamp_similarity(scores[follower] + FOLLOWING_AFTER_LATE_BOOST)
        elif not opens_with_next_label(hits[follower].content, label):
            scores[follower] = clamp_similarity(scores[follower] + FOLLOWING_CONTINUATION_BOOST)

    rescored = [hit.model_copy(update={"similarity": score}) for hit, score in zip(hits, scores)]
    # sorted() is stable.
    return sorted(rescored, key=lambda hit: hit.similarity, reverse=True)


def top_label_anchor(hits: list[SearchHit], label: str) -> int | None:
    """Index of the highest-ranked hit containing *label*."""
    for index, hit in enumerate(hits):
        if label_position(label, hit.content) is not None:
            return index
    return None


def include_following(
    selected: list[SearchHit],
    anchor_index: int,
    following: SearchHit,
    limit: int,
) -> list[SearchHit]:
    """Force *following* into *selected*, directly after its anchor.

    When *selected* already holds *limit* hits, the lowest-ranked one other
    than the anchor makes room.  With a limit of one the anchor is kept and
    nothing changes.  Nothing changes either if *following* is already
    selected.
    """
    if any(_same_chunk(hit, following) for hit in selected):
        return selected
    if limit <= 1:
        return selected

    anchor = selected[anchor_index]
    kept = list(selected)
    if len(kept) < limit:
        kept.insert(anchor_index + 1, following)
        return kept
    for drop in range(len(kept) - 1, -1, -1):
        if drop != anchor_index:
            del kept[drop]
            break
    position = next(i for i, hit in enumerate(kept) if hit is anchor)
    kept.insert(position + 1, following)
    return kept


def _same_chunk(left: SearchHit, right: SearchHit) -> bool:
    if left.resource_id is not None and left.resource_id == right.resource_id:
        return True
    return (
        left.source is not None
        and left.chunk_index is not None
        and left.source == right.source
        and left.chunk_index == right.chunk_index
    )
