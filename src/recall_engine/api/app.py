"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from recall_engine.api.middleware import RequestTimingMiddleware
from recall_engine.api.routes_feedback import router as feedback_router
from recall_engine.api.routes_health import router as health_router
from recall_engine.api.routes_query import router as query_router
from recall_engine.config.settings import Settings
from recall_engine.embeddings.cache import EmbeddingCache
from recall_engine.embeddings.cached_embedder import CachedEmbedder
from recall_engine.embeddings.openai_embedder import OpenAIEmbedder
from recall_engine.embeddings.vertex_embedder import VertexEmbedder
from recall_engine.generation.answer_generator import AnswerGenerator
from recall_engine.generation.credentials import AccessTokenCache, ServiceAccountTokenSource
from recall_engine.generation.gemini_provider import GeminiProvider
from recall_engine.generation.rate_limiter import SlidingWindowRateLimiter
from recall_engine.observability.logger import get_logger, setup_logging
from recall_engine.pipeline.query_pipeline import QueryPipeline
from recall_engine.query.intent import (
    FallbackIntentClassifier,
    LLMIntentClassifier,
    LLMSubjectExtractor,
    PatternIntentClassifier,
    PatternSubjectExtractor,
    QueryClassifier,
)
from recall_engine.retrieval.hybrid_retriever import HybridRetriever
from recall_engine.storage.sqlite_chunk_store import SQLiteChunkStore
from recall_engine.storage.sqlite_query_store import SQLiteQueryStore
from recall_engine.storage.sqlite_rubric_store import SQLiteRubricStore

logger = get_logger("app")


def build_embedder(settings: Settings):
    """Raw embedding provider for the configured backend, or None."""
    limiter = SlidingWindowRateLimiter(max_requests=settings.generation_requests_per_minute)
    if settings.embedding_provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            rate_limiter=limiter,
            timeout_s=settings.upstream_timeout_s,
        )
    if settings.embedding_provider == "vertex":
        source = ServiceAccountTokenSource(settings.vertex_service_account_file)
        return VertexEmbedder(
            project_id=settings.vertex_project_id,
            token_cache=AccessTokenCache(source.fetch),
            location=settings.vertex_location,
            model=settings.vertex_embedding_model,
            rate_limiter=limiter,
            timeout_s=settings.upstream_timeout_s,
        )
    return None


def build_classifier(llm, settings: Settings) -> QueryClassifier:
    return QueryClassifier(
        intent_classifier=FallbackIntentClassifier(
            primary=LLMIntentClassifier(
                llm,
                temperature=settings.classification_temperature,
                max_tokens=settings.classification_max_tokens,
            ),
            fallback=PatternIntentClassifier(),
        ),
        subject_extractor=LLMSubjectExtractor(
            llm,
            temperature=settings.classification_temperature,
            max_tokens=settings.subject_max_tokens,
        ),
        subject_fallback=PatternSubjectExtractor(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    setup_logging(level=settings.log_level, json_logs=settings.json_logs)

    for path in [settings.sqlite_db_path, settings.embedding_cache_db_path]:
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    # Storage
    chunk_store = SQLiteChunkStore(settings.sqlite_db_path)
    await chunk_store.initialize()
    rubric_store = SQLiteRubricStore(settings.sqlite_db_path)
    await rubric_store.initialize()
    query_store = SQLiteQueryStore(settings.sqlite_db_path)
    await query_store.initialize()

    # Embedding (with cache)
    embedder = None
    raw_embedder = build_embedder(settings)
    if raw_embedder is not None:
        embedding_cache = EmbeddingCache(settings.embedding_cache_db_path)
        await embedding_cache.initialize()
        embedder = CachedEmbedder(delegate=raw_embedder, cache=embedding_cache)

    # LLM
    llm = GeminiProvider(
        api_key=settings.google_api_key,
        model=settings.gemini_model,
        rate_limiter=SlidingWindowRateLimiter(max_requests=settings.generation_requests_per_minute),
        timeout_s=settings.upstream_timeout_s,
    )

    retriever = HybridRetriever(
        store=chunk_store,
        vector_top_k=settings.vector_top_k,
        text_top_k=settings.text_top_k,
        text_match_score=settings.text_match_score,
        broaden_min_results=settings.broaden_min_results,
        timeout_s=settings.upstream_timeout_s,
    )

    answer_generator = AnswerGenerator(
        llm=llm,
        temperature=settings.gemini_temperature,
        max_tokens=settings.gemini_max_tokens,
        evaluation_temperature=settings.evaluation_temperature,
        evaluation_max_tokens=settings.evaluation_max_tokens,
    )

    query_pipeline = QueryPipeline(
        classifier=build_classifier(llm, settings),
        embedder=embedder,
        retriever=retriever,
        rubric_store=rubric_store,
        query_store=query_store,
        answer_generator=answer_generator,
        settings=settings,
    )

    app.state.query_pipeline = query_pipeline
    app.state.chunk_store = chunk_store
    app.state.query_store = query_store
    app.state.settings = settings

    logger.info(
        "startup_complete",
        chunks=await chunk_store.count_chunks(),
        rooms=await chunk_store.count_rooms(),
        embedding_provider=settings.embedding_provider,
    )

    yield

    logger.info("shutdown_complete")


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="Chat Recall Engine",
        version="1.0.0",
        description="Retrieval, ranking and streamed answers over archived team chat",
        lifespan=lifespan if use_lifespan else None,
    )
    app.add_middleware(RequestTimingMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(query_router, tags=["query"])
    app.include_router(feedback_router, tags=["feedback"])
    return app
