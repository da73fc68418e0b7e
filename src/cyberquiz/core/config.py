"""Configuration management for cyberquiz.

This module provides configuration classes using pydantic-settings
for environment variable management and validation.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


class Settings(BaseSettings):
    """Process settings loaded from environment variables.

    All settings can be configured via environment variables with
    the CYBERQUIZ_ prefix. These are deployment settings; the admin-facing
    generation settings (buffer size, enabled slot dimensions) live in the
    question store, see GenerationSettings.

    Example:
        >>> # export CYBERQUIZ_OLLAMA_MODEL=mistral:7b
        >>> # export CYBERQUIZ_DUPLICATE_THRESHOLD=0.97
        >>> settings = Settings()
        >>> settings.duplicate_threshold
        0.97

    Environment Variables:
        CYBERQUIZ_LLM_PROVIDER: "ollama" or "openai" (default: ollama)
        CYBERQUIZ_OLLAMA_BASE_URL: Ollama API URL (default: http://localhost:11434)
        CYBERQUIZ_VECTOR_STORE: "qdrant" or "memory" (default: qdrant)
        CYBERQUIZ_DATABASE_URL: SQLAlchemy async URL (default: sqlite+aiosqlite:///./cyberquiz.db)
        CYBERQUIZ_TIMEOUT_SECONDS: Timeout for each external call (default: 120.0)
    """

    model_config = SettingsConfigDict(
        env_prefix="CYBERQUIZ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Content generator
    llm_provider: Literal["ollama", "openai"] = Field(
        default="ollama",
        description="Which LLM adapter generates questions and embeddings",
    )
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL for Ollama API",
    )
    ollama_model: str = Field(
        default="mistral:7b",
        description="Ollama model used for question generation",
    )
    ollama_embed_model: str = Field(
        default="nomic-embed-text",
        description="Ollama model used for embeddings",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="API key for OpenAI (falls back to OPENAI_API_KEY)",
    )
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI chat model")
    openai_embed_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model",
    )

    # Vector index
    vector_store: Literal["qdrant", "memory"] = Field(
        default="qdrant",
        description="Which vector index backs duplicate detection",
    )
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="URL for Qdrant vector store",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Optional API key for Qdrant",
    )
    qdrant_collection: str = Field(
        default="cyberquiz_questions",
        description="Qdrant collection holding question embeddings",
    )
    vector_size: int = Field(default=768, ge=1, description="Embedding dimension")

    # Question store
    database_url: str = Field(
        default="sqlite+aiosqlite:///./cyberquiz.db",
        description="SQLAlchemy async database URL",
    )

    # Pipeline tuning
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Timeout for each external call made by the pipeline",
    )
    duplicate_threshold: float = Field(
        default=0.95,
        gt=0,
        le=1,
        description="Cosine similarity above which a candidate is auto-rejected",
    )
    display_threshold: float = Field(
        default=0.75,
        ge=0,
        le=1,
        description="Cosine similarity above which a neighbour is shown to reviewers",
    )
    max_retries: int = Field(default=3, ge=1, le=10, description="Attempts per generation job")
    slot_history_window_hours: float = Field(
        default=24.0,
        gt=0,
        description="Trailing window in which used slots are avoided",
    )
    slot_history_limit: int = Field(
        default=100,
        ge=1,
        description="Maximum number of recent slots considered",
    )
    context_max_items: int = Field(
        default=5,
        ge=0,
        description="Maximum external context items added to a prompt",
    )

    @model_validator(mode="after")
    def _validate_thresholds(self) -> Self:
        """Display threshold must sit strictly below the duplicate threshold."""
        if self.display_threshold >= self.duplicate_threshold:
            msg = (
                f"display_threshold ({self.display_threshold}) must be lower than "
                f"duplicate_threshold ({self.duplicate_threshold})"
            )
            raise ValueError(msg)
        return self
