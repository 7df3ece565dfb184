"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible endpoints via a custom
``openai_base_url``.

The SDK's own retry layer is disabled (``max_retries=0``): retries happen in
:meth:`OpenAIEmbeddingProvider.embed_single` as an explicit attempt loop so
the attempt count and backoff come from :class:`Settings` and the sleep
function can be swapped out in tests.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import httpx
import openai
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}
_DEFAULT_DIMENSION = 1536

SleepFunc = Callable[[float], Awaitable[None]]


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Parameters
    ----------
    settings:
        Application settings (API key, base URL, model, retry policy).
    http_client:
        Optional shared ``httpx.AsyncClient``; the application passes one
        so every outbound call reuses the same connection pool.
    sleep:
        Coroutine used for backoff waits.  Defaults to ``asyncio.sleep``.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": settings.openai_timeout_seconds,
            "max_retries": 0,
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        if http_client is not None:
            client_kwargs["http_client"] = http_client

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, _DEFAULT_DIMENSION)
        self._max_attempts = settings.embedding_max_attempts
        self._backoff_base = settings.embedding_backoff_base
        self._sleep = sleep
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed_single(self, text: str) -> list[float]:
        """Embed *text*, retrying transient failures with exponential backoff.

        The wait before attempt ``n + 1`` is ``embedding_backoff_base ** n``
        seconds (2s, then 4s with the defaults).  API errors of any status and
        malformed response bodies both count as transient.
        """
        last_error: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._request_embedding(text)
            except (openai.APIError, EmbeddingError) as exc:
                last_error = exc
                logger.warning(
                    "embedding_attempt_failed",
                    provider=self._provider_label,
                    model=self._model,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    error=str(exc),
                )
                if attempt < self._max_attempts:
                    await self._sleep(self._backoff_base**attempt)

        raise EmbeddingError(
            message=(
                f"Embedding failed after {self._max_attempts} attempt(s): {last_error}"
            ),
            provider_name=self.get_provider_name(),
        ) from last_error

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _request_embedding(self, text: str) -> list[float]:
        """Make one embeddings call and validate the response shape."""
        response = await self._client.embeddings.create(
            input=text,
            model=self._model,
            encoding_format="float",
        )

        data = getattr(response, "data", None)
        if not data:
            raise EmbeddingError(
                message="Malformed embedding response: no data",
                provider_name=self.get_provider_name(),
            )
        vector = getattr(data[0], "embedding", None)
        if not isinstance(vector, list) or not vector:
            raise EmbeddingError(
                message="Malformed embedding response: empty vector",
                provider_name=self.get_provider_name(),
            )

        logger.debug(
            "openai_embedding",
            model=self._model,
            provider=self._provider_label,
            dimension=len(vector),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return [float(v) for v in vector]
