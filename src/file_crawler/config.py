"""Application configuration and settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from file_crawler.core.exceptions import ConfigError

# Environment variable names for the values a run cannot start without.
REQUIRED_FOR_SEARCH: tuple[str, ...] = ("openai_api_key", "openai_url", "openai_model", "qdrant_url")
REQUIRED_FOR_INGEST: tuple[str, ...] = ("qdrant_url",)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application
    app_name: str = "File Crawler API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # API
    api_v1_prefix: str = "/api/v1"

    # CORS
    cors_origins: list[str] = ["*"]
    cors_credentials: bool = True
    cors_methods: list[str] = ["*"]
    cors_headers: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    # OpenAI-compatible chat completion
    openai_api_key: str | None = None
    openai_url: str | None = None  # Base URL of the OpenAI-compatible API
    openai_model: str | None = None
    openai_temperature: float = 0.7
    openai_max_tokens: int = 4096
    openai_max_retries: int = 2

    # OpenAI embeddings (used when dense_backend == "openai")
    openai_embedding_model: str = "text-embedding-3-small"

    # Qdrant Configuration
    qdrant_url: str | None = "http://localhost:6333"
    qdrant_api_key: str | None = None
    qdrant_collection_name: str = "file_embeddings"
    qdrant_prefer_grpc: bool = False
    qdrant_timeout: int = 30  # Timeout in seconds

    # Embeddings
    dense_backend: Literal["fastembed", "openai"] = "fastembed"
    dense_model_name: str = "BAAI/bge-small-en-v1.5"
    dense_dim: int = 384
    sparse_model_name: str = "prithivida/Splade_PP_en_v1"
    embedding_batch_size: int = 32  # Texts per encoder call
    embedding_max_tokens: int = 512  # Longer inputs are truncated with a warning

    # Reranker
    reranker_enabled: bool = True
    reranker_model_name: str = "jinaai/jina-reranker-v1-turbo-en"

    # Chunking (characters)
    chunk_size: int = 1000
    chunk_overlap: int = 100

    # Hybrid Search Configuration
    candidate_pool_size: int = 25  # Results per search mode before fusion
    rrf_k: float = 60.0
    rerank_top_n: int = 20  # Fused candidates handed to the reranker
    result_count: int = 10  # Chunks passed to the answer generator

    # Ingestion
    ingest_max_concurrency: int = 4
    supported_extensions: list[str] = [
        ".pdf",
        ".xlsx",
        ".doc",
        ".docx",
        ".ppt",
        ".pptx",
        ".md",
        ".txt",
        ".html",
        ".csv",
    ]

    # Retry policy and per-call timeouts (seconds)
    retry_max_attempts: int = 3
    retry_initial_backoff: float = 0.5
    retry_max_backoff: float = 8.0
    embedding_timeout: float = 120.0
    rerank_timeout: float = 60.0
    generation_timeout: float = 120.0

    def require(self, *fields: str) -> None:
        """Fail fast when required values are missing.

        Args:
            fields: Setting names that must be non-empty.

        Raises:
            ConfigError: Naming every missing environment variable.
        """
        missing = [name.upper() for name in fields if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    @property
    def index_signature(self) -> str:
        """Identify the models and chunking parameters that produced stored chunks."""
        dense_model = (
            self.openai_embedding_model if self.dense_backend == "openai" else self.dense_model_name
        )
        return "|".join(
            [
                f"dense={dense_model}:{self.dense_dim}",
                f"sparse={self.sparse_model_name}",
                f"chunk={self.chunk_size}/{self.chunk_overlap}",
            ]
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
