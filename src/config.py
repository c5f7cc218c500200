"""Runtime settings for the relay, read from environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field


class RelaySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    validation_cooldown_seconds: float = Field(default=5.0, ge=0)
    validation_timeout_seconds: float = Field(default=5.0, gt=0)
    send_timeout_seconds: float = Field(default=10.0, gt=0)
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    max_rate_limit_wait_seconds: float = Field(default=10.0, ge=0)
    max_attachment_bytes: int = Field(default=8 * 1024 * 1024, gt=0)
    max_attachments: int = Field(default=10, gt=0)
    history_page_size: int = Field(default=50, gt=0, le=100)

    @classmethod
    def from_env(cls) -> RelaySettings:
        """Create settings, overriding defaults from environment variables."""
        env_map = {
            "validation_cooldown_seconds": "VALIDATION_COOLDOWN_SECONDS",
            "validation_timeout_seconds": "VALIDATION_TIMEOUT_SECONDS",
            "send_timeout_seconds": "SEND_TIMEOUT_SECONDS",
            "fetch_timeout_seconds": "FETCH_TIMEOUT_SECONDS",
            "max_rate_limit_wait_seconds": "MAX_RATE_LIMIT_WAIT_SECONDS",
        }
        overrides = {
            field: os.environ[var] for field, var in env_map.items() if var in os.environ
        }
        return cls(**overrides)
