"""Problem-label detection shared by the chunker and the retriever.

A problem label is an uppercase letter followed by digits standing alone
as a word (``A1``, ``B12``).  Exercise sets in the course PDFs introduce
each problem with one, and students ask about problems by label
("What is A1?"), so both sides must agree on one pattern.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

PROBLEM_LABEL_PATTERN = re.compile(r"\b([A-Z]\d+)\b")

_LABEL_PARTS = re.compile(r"^([A-Z])(\d+)$")


@dataclass(frozen=True)
class LabelMatch:
    """One label occurrence: the label text and its character offset."""

    label: str
    position: int


def find_problem_labels(text: str) -> list[LabelMatch]:
    """Return every label occurrence in *text*, in document order."""
    return [
        LabelMatch(label=m.group(1), position=m.start(1))
        for m in PROBLEM_LABEL_PATTERN.finditer(text)
    ]


def first_problem_label(text: str) -> str | None:
    """Return the first label in *text*, or ``None``."""
    match = PROBLEM_LABEL_PATTERN.search(text)
    return match.group(1) if match else None


def label_position(label: str, content: str) -> int | None:
    """Offset of *label* in *content* as a whole word, or ``None``."""
    match = re.search(rf"\b{re.escape(label)}\b", content)
    return match.start() if match else None


def next_sequential_label(label: str) -> str | None:
    """``A1`` -> ``A2``, ``B9`` -> ``B10``.  ``None`` for non-labels."""
    match = _LABEL_PARTS.match(label)
    if not match:
        return None
    letter, number = match.groups()
    return f"{letter}{int(number) + 1}"
