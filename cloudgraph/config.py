"""CloudGraph centralized configuration management.

Uses pydantic-settings to load configuration from environment variables
and .env files with validation.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    API_FIELD_CONFIDENCE,
    COST_PRECISION,
    DEFAULT_BATCH_SIZE,
    SELECTOR_CONFIDENCE,
)


class Settings(BaseSettings):
    """CloudGraph settings.

    All settings can be overridden via environment variables
    prefixed with CLOUDGRAPH_.

    Example:
        CLOUDGRAPH_PROVIDER=gcp
        CLOUDGRAPH_RULES_PATH=/etc/cloudgraph/rules.json
    """

    model_config = SettingsConfigDict(
        env_prefix="CLOUDGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Rule tables
    provider: str = Field(default="aws", description="Provider whose built-in rule table is used")
    rules_path: Optional[str] = Field(default=None, description="Rule table file overriding the built-in one")

    # Edge scoring
    edge_confidence: float = Field(default=API_FIELD_CONFIDENCE, ge=0.0, le=1.0)
    selector_confidence: float = Field(default=SELECTOR_CONFIDENCE, ge=0.0, le=1.0)

    # Enrichment
    enrichment_batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1, le=1000)

    # Cost attribution
    cost_precision: int = Field(default=COST_PRECISION, ge=0, le=6)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()
