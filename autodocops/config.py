"""Centralized configuration using Pydantic BaseSettings"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration with environment variable support"""

    # Generative model (OpenAI-compatible API)
    openai_api_key: str | None = Field(
        default=None, description="API key for the generative model provider (never logged)"
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", description="Base URL of the OpenAI-compatible API"
    )
    generation_model: str = Field(
        default="gpt-4o-mini", description="Chat model used for artifact generation"
    )
    max_tokens: int = Field(
        default=4000, ge=1, le=32000, description="Maximum output tokens per generation"
    )
    temperature: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Sampling temperature (kept low for determinism)"
    )
    request_timeout_seconds: float = Field(
        default=60.0, gt=0, le=600, description="Timeout for a single model HTTP request"
    )
    max_retries: int = Field(
        default=3, ge=1, le=10, description="Max attempts for transient model failures"
    )
    retry_backoff_seconds: float = Field(
        default=1.0, ge=0.0, le=60.0, description="Base delay for exponential backoff"
    )
    prompt_max_tokens: int = Field(
        default=12000, ge=256, description="Token budget for source text inserted into prompts"
    )

    # Embedding
    embedding_provider: str = Field(
        default="openai", description="Embedding backend (openai, fastembed)"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model name"
    )
    embedding_dimension: int = Field(
        default=1536, description="Embedding vector dimension (1536 for text-embedding-3-small)"
    )
    embedding_max_tokens: int = Field(
        default=8000, ge=1, description="Token budget for text sent to the embedding model"
    )
    embedding_batch_size: int = Field(
        default=32, ge=1, le=256, description="Texts per embedding backend call"
    )
    fastembed_cache_dir: str = Field(
        default="./data/models", description="Directory to cache local embedding models"
    )

    # Generation cache
    cache_ttl_hours: float = Field(
        default=24.0, gt=0, description="Time-to-live for cached artifacts and embeddings"
    )
    cache_db_path: str | None = Field(
        default="./data/cache.db",
        description="SQLite backing store for the generation cache (unset for memory only)",
    )
    cache_purge_interval_hours: int = Field(
        default=6, ge=1, le=168, description="Interval between expired-entry purges"
    )

    # Database
    db_path: str = Field(default="./data/autodocops.db", description="SQLite database file path")

    # Search
    search_threshold: float = Field(
        default=0.8, ge=-1.0, le=1.0, description="Default minimum cosine similarity"
    )
    search_limit: int = Field(
        default=10, ge=1, le=100, description="Default maximum number of search results"
    )

    # MCP Server
    mcp_host: str = Field(default="0.0.0.0", description="Interface the MCP server listens on")
    mcp_port: int = Field(
        default=8080, ge=1024, le=65535, description="Port for MCP and HTTP routes"
    )

    # OpenTelemetry
    otel_logging_enabled: bool = Field(default=False, description="Enable OpenTelemetry logging")
    otel_tracing_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry tracing for HTTP requests"
    )
    otel_endpoint: str = Field(
        default="http://localhost:4318",
        description="OTLP/HTTP collector base URL; /v1/logs and /v1/traces are appended",
    )
    otel_service_name: str = Field(
        default="autodocops", description="service.name resource attribute"
    )
    otel_service_version: str = Field(
        default="1.0.0", description="service.version resource attribute"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global config instance
config = AppConfig()
