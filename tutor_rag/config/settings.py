"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

1. Environment variables, e.g. ``OPENAI_API_KEY=sk-...``
2. A ``.env`` file in the working directory

Field ``openai_api_key`` maps to ``OPENAI_API_KEY`` and so on.  Defaults
apply when neither source sets a value.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """tutor_rag application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embeddings ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint, empty = api.openai.com
    openai_embedding_model: str = "text-embedding-3-large"

    # === Storage ===
    vector_backend: str = "chromadb"  # "chromadb" or "memory"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "course_embeddings"
    memory_collection: str = "chat_memory"
    resource_db_path: str = "data/resources.db"

    # === Content ===
    content_dir: str = "./public/content"
    catalog_path: str = "config/catalog.yaml"
    config_path: str = "config/config.yaml"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
