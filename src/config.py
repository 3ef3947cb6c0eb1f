"""
Configuration for the payments ledger.

Settings come from environment variables prefixed with PAYMENTS_ (or a .env
file in the working directory), e.g. PAYMENTS_NUM_WORKERS=4.
"""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Runtime settings for one engine invocation"""

    # Logging configuration
    log_level: str = "WARNING"

    # Processing configuration
    num_workers: int = Field(default=1, ge=1)

    # Business rules configuration
    allow_deposits_when_locked: bool = False  # Locked accounts refuse deposits unless set
    output_precision: int = Field(default=4, ge=0, le=28)

    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level
