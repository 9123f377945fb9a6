"""Caching wrapper around an embedder that stores results in SQLite."""

from __future__ import annotations

from recall_engine.embeddings.cache import EmbeddingCache
from recall_engine.observability.logger import get_logger

logger = get_logger("cached_embedder")


class CachedEmbedder:
    """Checks the cache first and calls the delegate on a miss.

    Any failure (upstream errors, rate limiting, timeouts, cache I/O) becomes
    ``None``: the caller proceeds with text-only retrieval.
    """

    def __init__(self, delegate, cache: EmbeddingCache) -> None:
        self._delegate = delegate
        self._cache = cache

    async def embed(self, text: str) -> list[float] | None:
        model = self._delegate.model
        try:
            cached = await self._cache.get(model, text)
        except Exception as e:
            logger.warning("embed_cache_read_failed", error=str(e), error_type=type(e).__name__)
            cached = None
        if cached is not None:
            logger.debug("embed_cache_hit", query_len=len(text))
            return cached

        try:
            embedding = await self._delegate.embed(text)
        except Exception as e:
            logger.warning(
                "embedding_unavailable",
                error=str(e),
                error_type=type(e).__name__,
                kind=str(getattr(e, "kind", "")),
            )
            return None

        try:
            await self._cache.put(model, text, embedding)
        except Exception as e:
            logger.warning("embed_cache_write_failed", error=str(e), error_type=type(e).__name__)
        logger.debug("embed_cache_miss", query_len=len(text))
        return embedding
