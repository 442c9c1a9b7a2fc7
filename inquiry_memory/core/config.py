"""
Inquiry Memory Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or a .env file
once at process start. Settings are not hot-reloaded.
"""

from __future__ import annotations

import json
from datetime import timedelta
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

EmbeddingBackendName = Literal["openai", "ollama", "local"]


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    Database:
        DATABASE_URL wins when set (any SQLAlchemy async URL, e.g.
        ``sqlite+aiosqlite:///memory.db``). Otherwise the URL is built
        from the POSTGRES_* variables for the asyncpg driver.

    Memory subsystem:
        INACTIVITY_THRESHOLD_MINUTES (60), METADATA_REFRESH_INTERVAL_SECONDS
        (300), chunk window constants (500/75 words, single chunk under
        600 words), synthesis defaults (threshold 0.3, 5 sessions).
    """

    PROJECT_NAME: str = "Inquiry Memory"
    ENVIRONMENT: str = "local"

    # Database
    DATABASE_URL: str | None = None
    POSTGRES_USER: str = "inquiry"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "inquiry_memory"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Staleness scheduler
    INACTIVITY_THRESHOLD_MINUTES: int = Field(default=60, ge=1)
    METADATA_REFRESH_INTERVAL_SECONDS: float = Field(default=300.0, gt=0)
    METADATA_REFRESH_ENABLED: bool = True

    # Embedding backends
    EMBEDDING_BACKEND: EmbeddingBackendName = "openai"
    EMBEDDING_FALLBACK_BACKEND: EmbeddingBackendName | Literal["none"] = "ollama"
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    OLLAMA_EMBEDDING_MODEL: str = "nomic-embed-text"
    LOCAL_EMBEDDING_MODEL: str = "all-MiniLM-L6-v2"
    EMBEDDING_TIMEOUT: float = 30.0
    AVAILABILITY_TIMEOUT: float = 2.0

    # LLM providers
    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_TIMEOUT: float = 60.0
    LLM_TIMEOUT: float = 60.0  # anthropic / openai requests
    # Comma-separated ("anthropic,ollama") or a JSON array
    LLM_PROVIDER_CHAIN: Annotated[list[str], NoDecode] = ["anthropic", "openai", "ollama"]
    ANTHROPIC_UTILITY_MODEL: str = "claude-3-5-haiku-20241022"
    OPENAI_UTILITY_MODEL: str = "gpt-4o-mini"
    OLLAMA_UTILITY_MODEL: str = "llama3.2:latest"

    # Chunking (words)
    CHUNK_SIZE_WORDS: int = Field(default=500, ge=1)
    CHUNK_OVERLAP_WORDS: int = Field(default=75, ge=0)
    SINGLE_CHUNK_THRESHOLD_WORDS: int = Field(default=600, ge=1)

    # Retrieval and synthesis
    SIMILARITY_DEFAULT_LIMIT: int = 5
    SIMILARITY_DEFAULT_THRESHOLD: float = 0.3
    CONCEPT_SEARCH_LIMIT: int = 25
    SYNTHESIS_DEFAULT_THRESHOLD: float = 0.3
    SYNTHESIS_MAX_SESSIONS: int = 5

    # Background enrichment
    ENRICHMENT_QUEUE_SIZE: int = 1000
    ENRICHMENT_MAX_RETRIES: int = Field(default=3, ge=1)
    ENRICHMENT_RETRY_DELAY_SECONDS: float = 2.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @field_validator("LLM_PROVIDER_CHAIN", mode="before")
    @classmethod
    def _split_provider_chain(cls, value: object) -> object:
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                return json.loads(text)
            return [name.strip() for name in text.split(",") if name.strip()]
        return value

    @property
    def database_url(self) -> str:
        """Async SQLAlchemy connection string."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def inactivity_threshold(self) -> timedelta:
        return timedelta(minutes=self.INACTIVITY_THRESHOLD_MINUTES)


settings = Settings()
