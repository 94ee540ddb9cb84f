"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Defaults to ``text-embedding-3-large`` (3072 dims); any OpenAI-compatible
endpoint works through ``openai_base_url``.
"""

from __future__ import annotations

import openai
import structlog

from tutor_rag.config.settings import Settings
from tutor_rag.interfaces.embedding_provider import IEmbeddingProvider
from tutor_rag.utils.errors import EmbeddingError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Inputs are cut to this many characters before embedding.
_MAX_INPUT_CHARS = 8000

_DEFAULT_MODEL = "text-embedding-3-large"

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Newlines are flattened to spaces and inputs longer than 8000
    characters are truncated before the call.
    """

    def __init__(self, settings: Settings, dimension: int | None = None) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {"api_key": self._api_key}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        known = _MODEL_DIMENSIONS.get(self._model)
        if dimension is None and known is None:
            logger.warning("embedding_dimension_unknown", model=self._model, assumed=1536)
        self._dimension = dimension or known or 1536
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Splits into batches of 2048 when the input exceeds the per-call
        limit.
        """
        if not texts:
            return []

        prepared = [self._prepare_input(t) for t in texts]

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(prepared), _OPENAI_BATCH_LIMIT):
                batch = prepared[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                all_embeddings.extend(item.embedding for item in response.data)
                logger.debug(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"{self._provider_label} rate limited: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        if not result:
            raise EmbeddingError(
                message="Embedding API returned no vectors",
                provider_name=self.get_provider_name(),
            )
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    @property
    def model(self) -> str:
        return self._model

    @staticmethod
    def _prepare_input(text: str) -> str:
        return text.replace("\n", " ")[:_MAX_INPUT_CHARS]
