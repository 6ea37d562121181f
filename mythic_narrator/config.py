"""Narrator configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NarratorSettings(BaseSettings):
    """Narrator settings loaded from environment variables.

    Every value here is a default; per-call request fields win when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="NARRATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Line history (anti-repetition)
    history_size: int = Field(default=20, ge=8, le=64)
    similarity_threshold: float = Field(default=0.76, ge=0.55, le=0.94)

    # World-context compaction
    world_prompt_budget: int = Field(default=2000, ge=700, le=4000)

    # Debug
    debug: bool = False


@lru_cache
def get_settings() -> NarratorSettings:
    """Get cached settings instance."""
    return NarratorSettings()
