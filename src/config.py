"""
Actual iCal — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_TRUTHY = {"true", "1", "yes", "on"}


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Actual Budget server
    ACTUAL_SERVER: str
    ACTUAL_MAIN_PASSWORD: str
    ACTUAL_SYNC_ID: str
    ACTUAL_SYNC_PASSWORD: str = ""     # only for end-to-end encrypted budgets

    # Local sync cache
    ACTUAL_PATH: str = ".actual-cache"
    CLEAR_CACHE_ON_ERROR: bool = True

    # Feed
    TZ: str = "UTC"
    SYNC_ID_AS_URL: bool = False
    FEED_TIMEOUT_SECONDS: float = 60.0

    # Web server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    @field_validator("CLEAR_CACHE_ON_ERROR", "SYNC_ID_AS_URL", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in _TRUTHY

    @field_validator("PORT", mode="before")
    @classmethod
    def parse_port(cls, v: str | int) -> int:
        return int(v)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        return str(v).strip().upper() or "INFO"


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    server = os.getenv("ACTUAL_SERVER", "")
    password = os.getenv("ACTUAL_MAIN_PASSWORD", "")
    sync_id = os.getenv("ACTUAL_SYNC_ID", "")

    if not server or not password or not sync_id:
        print(
            "ERROR: Missing ACTUAL_SERVER, ACTUAL_MAIN_PASSWORD or ACTUAL_SYNC_ID in .env",
            file=sys.stderr,
        )
        sys.exit(1)

    return Settings(
        ACTUAL_SERVER=server,
        ACTUAL_MAIN_PASSWORD=password,
        ACTUAL_SYNC_ID=sync_id,
        ACTUAL_SYNC_PASSWORD=os.getenv("ACTUAL_SYNC_PASSWORD", ""),
        ACTUAL_PATH=os.getenv("ACTUAL_PATH", ".actual-cache"),
        CLEAR_CACHE_ON_ERROR=os.getenv("CLEAR_CACHE_ON_ERROR", "true"),
        TZ=os.getenv("TZ", "UTC"),
        SYNC_ID_AS_URL=os.getenv("SYNC_ID_AS_URL", "false"),
        FEED_TIMEOUT_SECONDS=os.getenv("FEED_TIMEOUT_SECONDS", "60"),
        HOST=os.getenv("HOST", "0.0.0.0"),
        PORT=os.getenv("PORT", "3000"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
