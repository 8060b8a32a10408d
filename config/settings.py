"""Application settings and configuration management."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interviews.db")

    GEMINI_API_KEY: str | None = None
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_ENABLE_FALLBACK: bool = True
    BACKENDS_CONFIG_PATH: str | None = None

    RETRY_BASE_DELAY_S: float = 1.0
    RETRY_MAX_DELAY_S: float = 30.0
    RETRY_EXPONENTIAL_BASE: float = 2.0
    RETRY_JITTER: bool = True

    SYSTEM_PROMPT_PATH: str = str(ROOT_DIR / "prompts" / "system_prompt.md")
    KNOWLEDGE_BASE_PATH: str = str(ROOT_DIR / "prompts" / "knowledgebase.md")
    DEFAULT_JOB_ID: str = "fedex-driver-001"

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()
