"""Normalisation of raw PDF text.

PDF text layers come with CRLF line endings, form feeds between pages,
trailing blanks and words hyphenated across line breaks.  Cleaning runs in
two stages so paragraph structure survives until the chunker has used it:

* :meth:`TextCleaner.normalize` -- structural fixes, blank-line paragraph
  breaks preserved.
* :meth:`TextCleaner.clean` -- the same, then every whitespace run
  collapsed to one space.
"""

from __future__ import annotations

import re

_TRAILING_BLANKS = re.compile(r"[ \t]+$", re.MULTILINE)
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_WHITESPACE_RUN = re.compile(r"\s+")


class TextCleaner:
    """Cleans extracted PDF text.  Stateless; empty input gives empty output."""

    def normalize(self, raw: str) -> str:
        """Apply every cleaning step except the final whitespace collapse."""
        if not raw:
            return ""
        text = raw.replace("\r\n", "\n").replace("\f", "\n")
        text = _TRAILING_BLANKS.sub("", text)
        text = _EXCESS_NEWLINES.sub("\n\n", text)
        # "expo-\nnent" -> "exponent"
        text = text.replace("-\n", "")
        return text.strip()

    def clean(self, raw: str) -> str:
        """Fully clean *raw*: :meth:`normalize`, then collapse whitespace."""
        return self.collapse_whitespace(self.normalize(raw))

    @staticmethod
    def collapse_whitespace(text: str) -> str:
        return _WHITESPACE_RUN.sub(" ", text).strip()
