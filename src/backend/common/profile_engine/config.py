from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


load_dotenv()


class EngineSettings(BaseModel):
    """Runtime settings for a profile run; environment values can be overridden per call."""

    profile_id: str = "local"
    target_root: str = "/"
    log_level: str = "WARNING"
    max_workers: int = Field(default=1, ge=1)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value


_ENV_KEYS = {
    "profile_id": "AUDIT_PROFILE_ID",
    "target_root": "AUDIT_TARGET_ROOT",
    "log_level": "AUDIT_LOG_LEVEL",
    "max_workers": "AUDIT_MAX_WORKERS",
}


def load_settings(**overrides: Any) -> EngineSettings:
    raw: dict[str, Any] = {}
    for field_name, env_name in _ENV_KEYS.items():
        value = os.getenv(env_name, "").strip()
        if value:
            raw[field_name] = value
    raw.update({k: v for k, v in overrides.items() if v is not None})
    return EngineSettings.model_validate(raw)
