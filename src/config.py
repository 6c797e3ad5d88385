"""
Aura Assistant — Centralized configuration.

Loads all settings from .env. Nothing is strictly required here: a missing
LLM_API_KEY simply means the assistant runs on keyword matching, and the
Telegram token is only checked by the bot entry point.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str = ""

    # LLM — provider-agnostic (openai, anthropic, gemini, cohere)
    LLM_PROVIDER: str = "openai"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""        # empty → keyword extraction only
    LLM_TIMEOUT_SECONDS: float = 20.0

    # SQLite
    DATABASE_PATH: str = "data/aura.db"

    # Security
    ALLOWED_USER_IDS: list[int] = []

    TIMEZONE: str = "UTC"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("LLM_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def parse_timeout(cls, v: str | float) -> float:
        return float(v)

    @property
    def llm_configured(self) -> bool:
        key = self.LLM_API_KEY.strip()
        return bool(key) and not key.startswith("your-")


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "openai"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=os.getenv("LLM_API_KEY", ""),
        LLM_TIMEOUT_SECONDS=os.getenv("LLM_TIMEOUT_SECONDS", "20"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/aura.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
