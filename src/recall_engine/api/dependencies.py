"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from recall_engine.config.settings import Settings
from recall_engine.pipeline.query_pipeline import QueryPipeline
from recall_engine.storage.sqlite_chunk_store import SQLiteChunkStore
from recall_engine.storage.sqlite_query_store import SQLiteQueryStore


def get_query_pipeline(request: Request) -> QueryPipeline:
    return request.app.state.query_pipeline


def get_chunk_store(request: Request) -> SQLiteChunkStore:
    return request.app.state.chunk_store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_query_store(request: Request) -> SQLiteQueryStore:
    return request.app.state.query_store
