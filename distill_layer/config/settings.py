"""
Engine settings with environment variable support.

Configuration is loaded from environment variables with optional .env file.
Per-target tuning (limits, weights, thresholds) lives on the profiles;
these settings only pick defaults and locations.
"""

from datetime import datetime
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Distillation settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Targeting
    default_target: str = Field(default="DOC", alias="DISTILL_DEFAULT_TARGET")
    profiles_path: Optional[str] = Field(default=None, alias="DISTILL_PROFILES_PATH")

    # Output
    output_dir: str = Field(default="distilled", alias="DISTILL_OUTPUT_DIR")

    # Logging
    log_level: str = Field(default="INFO", alias="DISTILL_LOG_LEVEL")

    # Inputs smaller than this are flagged as not needing distillation
    small_input_bytes: int = Field(default=300_000, ge=0, alias="DISTILL_SMALL_INPUT_BYTES")

    # Run clock stamped on cards; unset means the start of the current UTC day
    run_clock: Optional[datetime] = Field(default=None, alias="DISTILL_RUN_CLOCK")

    def has_profile_file(self) -> bool:
        """Check if an extra profiles file is configured."""
        return bool(self.profiles_path)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
