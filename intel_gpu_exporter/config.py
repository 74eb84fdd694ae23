# intel_gpu_exporter/config.py
from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator

from intel_gpu_exporter.collector.poller import DEFAULT_COMMAND

# *** How to override at runtime (the NixOS unit sets the first three):
# export PORT=9101
# export LISTEN_ADDRESS=127.0.0.1
# export LOG_LEVEL=debug
# export INTEL_GPU_TOP_CMD="intel_gpu_top -c -d drm:/dev/dri/card1"

LOG_LEVELS = ("debug", "info", "warn", "warning", "error")


class Settings(BaseModel):
    port: int = Field(8080, ge=1, le=65535)
    address: str = "0.0.0.0"
    log_level: str = "info"
    command: str = DEFAULT_COMMAND

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.lower()
        if v not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}")
        return v

    @field_validator("command")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("command must not be empty")
        return v

    @property
    def logging_level(self) -> str:
        """Name understood by `logging` (WARN is spelled WARNING there)."""
        return "WARNING" if self.log_level == "warn" else self.log_level.upper()

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Read settings from the environment; non-None overrides win."""
        values = {
            "port": os.getenv("PORT", 8080),
            "address": os.getenv("LISTEN_ADDRESS", "0.0.0.0"),
            "log_level": os.getenv("LOG_LEVEL", "info"),
            "command": os.getenv("INTEL_GPU_TOP_CMD", DEFAULT_COMMAND),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
