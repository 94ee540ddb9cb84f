"""YAML configuration loading with environment overrides.

Layers, later ones win:

1. ``config/config.yaml`` -- tunables checked into the repo
2. ``.env`` file and environment variables (via :class:`Settings`)

``config/catalog.yaml`` is loaded separately into a
:class:`~tutor_rag.models.catalog.CourseCatalog`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from tutor_rag.config.settings import Settings
from tutor_rag.config.tuning import TuningConfig
from tutor_rag.models.catalog import Chapter, CourseCatalog
from tutor_rag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge environment-based Settings on top.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
              an empty base config.
        settings: Settings instance to merge; a fresh one is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    yaml_config = _read_yaml(Path(path))

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "embedding": {
            "model": settings.openai_embedding_model,
            "base_url": settings.openai_base_url,
        },
        "storage": {
            "vector_backend": settings.vector_backend,
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "chromadb_collection": settings.chromadb_collection,
            "memory_collection": settings.memory_collection,
            "resource_db_path": settings.resource_db_path,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_tuning(config: dict[str, Any]) -> TuningConfig:
    """Build a validated :class:`TuningConfig` from a loaded config dict."""
    sections = {
        key: config[key]
        for key in ("chunking", "labels", "retrieval", "retry", "memory")
        if isinstance(config.get(key), dict)
    }
    try:
        return TuningConfig(**sections)
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid tuning values: {exc}") from exc


def load_catalog(path: str = "config/catalog.yaml") -> CourseCatalog:
    """Read the course catalog YAML.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    catalog_path = Path(path)
    if not catalog_path.exists():
        raise ConfigurationError(message=f"Course catalog not found: {catalog_path}")

    raw = _read_yaml(catalog_path)
    chapters_raw = raw.get("chapters")
    if not isinstance(chapters_raw, dict):
        raise ConfigurationError(message=f"No 'chapters' mapping in {catalog_path}")

    try:
        chapters = [
            Chapter(
                chapter_id=chapter_id,
                name=body.get("name", chapter_id),
                sources={str(k): str(v) for k, v in (body.get("sources") or {}).items()},
                topics=list(body.get("topics") or []),
            )
            for chapter_id, body in chapters_raw.items()
        ]
    except (AttributeError, ValidationError) as exc:
        raise ConfigurationError(message=f"Malformed course catalog {catalog_path}: {exc}") from exc

    logger.debug("catalog_loaded", path=str(catalog_path), chapters=len(chapters))
    return CourseCatalog(chapters=chapters)


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(message=f"Cannot parse {path}: {exc}") from exc


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
