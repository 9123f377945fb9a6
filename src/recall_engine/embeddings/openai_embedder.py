"""OpenAI embedding provider using text-embedding-3-small."""

from __future__ import annotations

import asyncio

from openai import AsyncOpenAI

from recall_engine.exceptions import EmbeddingError, UpstreamTimeoutError
from recall_engine.generation.rate_limiter import SlidingWindowRateLimiter
from recall_engine.observability.logger import get_logger

logger = get_logger("embeddings")


class OpenAIEmbedder:
    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        rate_limiter: SlidingWindowRateLimiter | None = None,
        timeout_s: float = 20.0,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self._timeout_s = timeout_s

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, text: str) -> list[float]:
        self._rate_limiter.acquire(self._model)
        try:
            response = await asyncio.wait_for(
                self._client.embeddings.create(input=[text], model=self._model),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(f"Embedding timed out after {self._timeout_s}s") from e
        except Exception as e:
            raise EmbeddingError(f"Failed to embed query: {e}") from e
        logger.debug("embedded_query", model=self._model, chars=len(text))
        return response.data[0].embedding
