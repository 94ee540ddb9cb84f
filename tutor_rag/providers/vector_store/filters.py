"""Metadata filter evaluation shared by the vector store adapters.

Filters use the syntax documented on
:class:`~tutor_rag.interfaces.vector_store_provider.IVectorStoreProvider`:
equality (``{"source": "a"}``) or membership (``{"source": {"$in": [...]}}``),
several keys combined with AND.
"""

from __future__ import annotations

from typing import Any


def matches_filters(metadata: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    """Return ``True`` when *metadata* satisfies every clause in *filters*."""
    if not filters:
        return True
    for key, expected in filters.items():
        actual = metadata.get(key)
        if isinstance(expected, dict):
            if "$in" in expected:
                if actual is None or actual not in expected["$in"]:
                    return False
            elif "$eq" in expected:
                if actual != expected["$eq"]:
                    return False
            else:
                raise ValueError(f"Unsupported filter operator for {key!r}: {expected}")
        elif actual != expected:
            return False
    return True


def to_chroma_where(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate the common filter syntax to a ChromaDB ``where`` clause."""
    if not filters:
        return None
    clauses: list[dict[str, Any]] = []
    for key, expected in filters.items():
        if isinstance(expected, dict):
            if "$in" in expected:
                clauses.append({key: {"$in": list(expected["$in"])}})
            elif "$eq" in expected:
                clauses.append({key: {"$eq": expected["$eq"]}})
            else:
                raise ValueError(f"Unsupported filter operator for {key!r}: {expected}")
        else:
            clauses.append({key: {"$eq": expected}})
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}
