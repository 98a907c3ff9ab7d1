"""Application settings for the Hearth triage service."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the triage pipeline and its collaborators."""

    model_config = SettingsConfigDict(
        env_prefix="HEARTH_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core application settings
    app_env: Literal["development", "staging", "production", "test"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False
    secret_key: str = Field(..., min_length=32)

    # CORS - use string to avoid JSON parsing issues
    cors_origins_str: str = Field(default="http://localhost:3000,https://localhost:3000", alias="cors_origins")

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from string."""
        if not self.cors_origins_str.strip():
            return ["http://localhost:3000", "https://localhost:3000"]
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    # Firestore (tenant document store). Unset means in-memory only.
    firestore_project: str | None = None
    firestore_database: str | None = None
    firebase_admin_sdk_json: str | None = None
    firebase_admin_sdk_path: str | None = None

    # Models
    classifier_model: str = "gpt-4o-mini"
    responder_model: str = "gpt-4o"
    embedding_model: str = "text-embedding-3-small"

    # Cost units per collaborator call
    cheap_call_cost: float = 0.00001
    expensive_call_cost: float = 0.02

    # Collaborator timeouts (seconds)
    classifier_timeout_seconds: float = 5.0
    responder_timeout_seconds: float = 20.0
    embedding_timeout_seconds: float = 10.0
    store_timeout_seconds: float = 5.0

    # Response cache (REDIS_URL is honoured when redis_url is unset)
    redis_url: str | None = None
    redis_max_connections: int = 20
    cache_enabled: bool = True
    cache_ttl_seconds: int = 86400

    # Instant detectors
    spam_window_seconds: float = 10.0
    spam_max_messages: int = 5
    raid_window_seconds: float = 30.0
    raid_min_users: int = 3
    raid_min_fingerprint_length: int = 1
    sweep_probability: float = Field(default=0.01, ge=0.0, le=1.0)
    sweep_interval_seconds: float = 60.0

    # Knowledge retrieval
    rag_chunk_tokens: int = 500
    rag_top_k: int = 3
    rag_min_similarity: float = 0.3

    # Analytics
    analytics_flush_interval_seconds: float = 300.0
    history_max_entries: int = 50
    history_ttl_seconds: int = 30 * 86400

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Ensure secret key is strong enough."""
        if len(v) < 32:
            raise ValueError("Secret key must be at least 32 characters long")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


# Read directly from the environment, without the HEARTH_ prefix:
# - OPENAI_API_KEY
# - REDIS_URL (fallback for redis_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
