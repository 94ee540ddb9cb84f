"""Course catalog models.

A chapter groups the source documents (notes and exercise sets) that are
ingested and searched together.  Source ids double as the ``source`` field
of every stored record, so they are the unit of scoping and re-ingestion.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Chapter(BaseModel):
    """One course chapter and the PDFs that make it up."""

    model_config = ConfigDict(frozen=True)

    chapter_id: str = Field(description="Slug used on the command line, e.g. 'radicals'.")
    name: str = Field(description="Display name, e.g. 'Radicals (Chapter 3)'.")
    # Ordered source id -> PDF filename under the content directory.
    sources: dict[str, str] = Field(default_factory=dict)
    topics: list[str] = Field(default_factory=list)

    @property
    def source_ids(self) -> list[str]:
        return list(self.sources)


class CourseCatalog(BaseModel):
    """All chapters, in course order."""

    model_config = ConfigDict(frozen=True)

    chapters: list[Chapter] = Field(default_factory=list)

    def get(self, chapter_id: str) -> Chapter | None:
        for chapter in self.chapters:
            if chapter.chapter_id == chapter_id:
                return chapter
        return None

    def chapter_for_source(self, source_id: str) -> Chapter | None:
        for chapter in self.chapters:
            if source_id in chapter.sources:
                return chapter
        return None

    @property
    def chapter_ids(self) -> list[str]:
        return [c.chapter_id for c in self.chapters]
