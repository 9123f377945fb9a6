"""Central configuration via Pydantic Settings. All values driven by env vars."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API Keys
    openai_api_key: str = ""
    google_api_key: str = ""

    # LLM / Gemini
    gemini_model: str = "gemini-2.0-flash"
    gemini_temperature: float = 0.3
    gemini_max_tokens: int = 4096
    classification_temperature: float = 0.1
    classification_max_tokens: int = 50
    subject_max_tokens: int = 100
    evaluation_temperature: float = 0.2
    evaluation_max_tokens: int = 6000

    # Embedding
    embedding_provider: Literal["openai", "vertex", "none"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    vertex_project_id: str = ""
    vertex_location: str = "us-central1"
    vertex_embedding_model: str = "text-embedding-004"
    vertex_service_account_file: str = ""

    # Retrieval
    vector_top_k: int = 50
    text_top_k: int = 50
    text_match_score: float = 0.5
    broaden_min_results: int = 5
    dedupe_similarity_threshold: float = 0.8

    # MMR reranking
    mmr_lambda: float = 0.7
    mmr_diversity_weight: float = 0.3
    mmr_keyword_boost: float = 0.1
    mmr_max_results: int = 12
    mmr_recency_weight: float = 0.2
    mmr_time_window_max_results: int = 15
    mmr_time_window_recency_weight: float = 0.4
    evaluation_max_results: int = 15

    # Evidence policy
    diversity_leniency_min_items: int = 3

    # Conversation memory
    conversation_context_limit: int = 10

    # Storage paths
    sqlite_db_path: str = "data/recall.db"
    embedding_cache_db_path: str = "data/embedding_cache.db"

    # Timeouts (seconds)
    session_timeout_s: float = 30.0
    upstream_timeout_s: float = 20.0

    # Rate limiting (outbound generation/embedding calls)
    generation_requests_per_minute: int = 60

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    json_logs: bool = True

    model_config = {"env_file": ".env", "env_prefix": "RECALL_"}
