# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings. Components never
read Settings directly; factories and the facade translate it into explicit
constructor arguments.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === COMPLETION PROVIDERS ===
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    google_api_key: str = ""
    gemini_model: str = "gemini-1.5-pro"
    ollama_base_url: str = "http://localhost:11434"
    completion_max_tokens: int = 4000
    completion_temperature: float = 0.7
    cache_breakpoint_threshold: int = 1000

    # === EMBEDDINGS ===
    embedding_provider: Literal["openai", "ollama", "none"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_max_chars: int = 8000
    embedding_cache_ttl: float = 3600.0
    embedding_cache_max_size: int = 10_000

    # === PROMPT CACHE ===
    prompt_caching_enabled: bool = True
    prompt_cache_ttl: float = 7200.0
    prompt_cache_max_size: int = 1000
    prompt_cache_semantic_enabled: bool = True
    semantic_threshold: float = 0.85
    cache_hit_target: float = 0.80

    # === SEARCH ===
    search_cache_ttl: float = 300.0
    search_cache_max_size: int = 512
    search_default_k: int = 5

    # === RETRY / TIMEOUTS ===
    provider_timeout_s: float = 10.0
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 0.5
    retry_backoff_factor: float = 2.0
    retry_max_delay_s: float = 8.0

    # === STORAGE ===
    storage_backend: Literal["memory", "sqlite"] = "memory"
    storage_path: Path | None = None

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("semantic_threshold", "cache_hit_target")
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v <= 1.0:
            raise ValueError("must be within [0, 1]")
        return v

    @field_validator(
        "prompt_cache_max_size",
        "embedding_cache_max_size",
        "search_cache_max_size",
        "embedding_dimensions",
        "embedding_max_chars",
        "retry_max_attempts",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator(
        "prompt_cache_ttl", "embedding_cache_ttl", "search_cache_ttl", "provider_timeout_s"
    )
    @classmethod
    def validate_positive_float(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.storage_backend == "sqlite" and self.storage_path is None:
            errors.append("STORAGE_BACKEND=sqlite requires STORAGE_PATH")

        if self.prompt_cache_semantic_enabled and self.embedding_provider == "none":
            errors.append(
                "PROMPT_CACHE_SEMANTIC_ENABLED requires an EMBEDDING_PROVIDER"
            )

        if self.retry_max_delay_s < self.retry_base_delay_s:
            errors.append("RETRY_MAX_DELAY_S must be >= RETRY_BASE_DELAY_S")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self
