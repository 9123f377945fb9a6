"""Vertex AI text embeddings authenticated with a service-account token."""

from __future__ import annotations

import httpx

from recall_engine.exceptions import EmbeddingError, UpstreamTimeoutError
from recall_engine.generation.credentials import AccessTokenCache
from recall_engine.generation.rate_limiter import SlidingWindowRateLimiter
from recall_engine.observability.logger import get_logger

logger = get_logger("vertex_embeddings")

PREDICT_URL = (
    "https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
    "/locations/{location}/publishers/google/models/{model}:predict"
)


class VertexEmbedder:
    def __init__(
        self,
        project_id: str,
        token_cache: AccessTokenCache,
        location: str = "us-central1",
        model: str = "text-embedding-004",
        rate_limiter: SlidingWindowRateLimiter | None = None,
        timeout_s: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = PREDICT_URL.format(location=location, project=project_id, model=model)
        self._tokens = token_cache
        self._model = model
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self._timeout_s = timeout_s
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, text: str) -> list[float]:
        self._rate_limiter.acquire(self._model)
        token = await self._tokens.get()
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                response = await client.post(
                    self._url,
                    headers={"Authorization": f"Bearer {token}"},
                    json={"instances": [{"content": text}]},
                )
                if response.status_code == 401:
                    self._tokens.invalidate()
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Vertex embedding timed out after {self._timeout_s}s") from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Vertex embedding failed: {e}") from e
        except ValueError as e:
            raise EmbeddingError("Vertex embedding response is not JSON") from e

        try:
            values = payload["predictions"][0]["embeddings"]["values"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingError("Vertex embedding response missing values") from e
        logger.debug("embedded_query", model=self._model, chars=len(text))
        return values
