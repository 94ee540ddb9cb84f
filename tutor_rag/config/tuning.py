"""Tunable numbers for chunking, retrieval and ingestion retries.

Defaults match the values the course corpus was built with; every field
can be overridden from ``config/config.yaml`` (see
:func:`tutor_rag.config.loader.load_tuning`).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChunkingConfig(BaseModel):
    """Character budgets for the chunker."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=1000, gt=0, description="Flush the buffer once it reaches this size.")
    chunk_overlap: int = Field(default=200, ge=0, description="Tail carried into the next chunk.")
    min_chunk_size: int = Field(default=100, ge=0, description="Smallest chunk worth storing.")
    max_chunk_size: int = Field(default=2000, gt=0, description="Hard ceiling on chunk length.")
    min_part_length: int = Field(default=50, ge=0, description="Smallest fragment for part chunking.")

    @model_validator(mode="after")
    def _check_bounds(self) -> ChunkingConfig:
        if not self.min_chunk_size <= self.chunk_size <= self.max_chunk_size:
            raise ValueError("expected min_chunk_size <= chunk_size <= max_chunk_size")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class LabelPolicy(BaseModel):
    """When the problem-label strategy takes over from prose chunking."""

    model_config = ConfigDict(frozen=True)

    min_labels_for_label_strategy: int = Field(default=3, ge=1)
    require_exercise_source_hint: bool = False
    exercise_marker: str = "Exercises"

    def applies(self, label_count: int, source_hint: str) -> bool:
        if label_count < self.min_labels_for_label_strategy:
            return False
        if self.require_exercise_source_hint:
            return self.exercise_marker in source_hint
        return True


class RetrievalConfig(BaseModel):
    """Over-fetch sizes and fallback scoring for the retriever."""

    model_config = ConfigDict(frozen=True)

    overfetch_factor: int = Field(default=3, ge=1)
    overfetch_floor: int = Field(default=24, ge=1)
    label_overfetch_factor: int = Field(default=5, ge=1)
    label_overfetch_floor: int = Field(default=40, ge=1)
    num_candidates: int = Field(default=200, ge=1)
    lexical_similarity: float = Field(default=0.6, ge=0.0, le=1.0)
    lexical_min_token_length: int = Field(default=3, ge=1)

    def fetch_size(self, limit: int, label_detected: bool) -> int:
        if label_detected:
            return max(limit * self.label_overfetch_factor, self.label_overfetch_floor)
        return max(limit * self.overfetch_factor, self.overfetch_floor)


class RetryConfig(BaseModel):
    """Bounded retry for per-chunk embedding calls during ingestion."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(default=3, ge=1)
    initial_backoff: float = Field(default=1.0, ge=0.0, description="Seconds before the second attempt.")

    def delay_for(self, attempt: int) -> float:
        """Backoff after failed *attempt* (1-based): 1s, 2s, 4s, ..."""
        return self.initial_backoff * (2 ** (attempt - 1))


class MemoryConfig(BaseModel):
    """Defaults for thread-scoped conversation memory recall."""

    model_config = ConfigDict(frozen=True)

    recall_limit: int = Field(default=6, ge=1)
    num_candidates: int = Field(default=100, ge=1)


class TuningConfig(BaseModel):
    """All tunables, grouped as they appear in ``config.yaml``."""

    model_config = ConfigDict(frozen=True)

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    labels: LabelPolicy = Field(default_factory=LabelPolicy)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
