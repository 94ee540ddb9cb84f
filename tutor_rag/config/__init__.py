"""Configuration: environment Settings, YAML tunables and the course catalog."""

from tutor_rag.config.loader import load_catalog, load_config, load_tuning
from tutor_rag.config.settings import Settings
from tutor_rag.config.tuning import (
    ChunkingConfig,
    LabelPolicy,
    MemoryConfig,
    RetrievalConfig,
    RetryConfig,
    TuningConfig,
)

__all__ = [
    "ChunkingConfig",
    "LabelPolicy",
    "MemoryConfig",
    "RetrievalConfig",
    "RetryConfig",
    "Settings",
    "TuningConfig",
    "load_catalog",
    "load_config",
    "load_tuning",
]
