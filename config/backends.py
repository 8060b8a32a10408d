"""Backend chain configuration for model invocation."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field

from .settings import Settings


class BackendRoute(BaseModel):
    """One upstream model endpoint in the fallback chain."""

    name: str
    priority: int = Field(ge=1)
    timeout_s: float = Field(ge=0.1)
    max_retries: int = Field(default=2, ge=0)
    cost_per_request: float = Field(default=0.0, ge=0.0)


class RetryPolicy(BaseModel):
    """Exponential backoff knobs shared by every backend."""

    max_retries: int = Field(default=2, ge=0)
    base_delay_s: float = Field(default=1.0, ge=0.0)
    max_delay_s: float = Field(default=30.0, ge=0.0)
    exponential_base: float = Field(default=2.0, ge=1.0)
    jitter: bool = True


class SafetySetting(BaseModel):
    category: str
    threshold: str = "BLOCK_MEDIUM_AND_ABOVE"


class GenerationSettings(BaseModel):
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_k: int = Field(default=40, ge=1)
    top_p: float = Field(default=0.95, ge=0.0, le=1.0)
    max_output_tokens: int = Field(default=4096, ge=1)
    safety: List[SafetySetting] = Field(
        default_factory=lambda: [
            SafetySetting(category="HARM_CATEGORY_HARASSMENT"),
            SafetySetting(category="HARM_CATEGORY_HATE_SPEECH"),
            SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT"),
            SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT"),
        ]
    )

    def as_payload(self) -> Dict[str, object]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }


DEFAULT_BACKENDS: List[BackendRoute] = [
    BackendRoute(name="gemini-3-pro-preview", priority=1, timeout_s=60.0, max_retries=2, cost_per_request=0.003),
    BackendRoute(name="gemini-2.5-flash", priority=2, timeout_s=30.0, max_retries=2, cost_per_request=0.0005),
    BackendRoute(name="gemini-2.0-flash", priority=3, timeout_s=20.0, max_retries=3, cost_per_request=0.0001),
]


class BackendsConfig(BaseModel):
    """Backend chain configuration root."""

    backends: List[BackendRoute] = Field(default_factory=lambda: list(DEFAULT_BACKENDS), min_length=1)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    enable_fallback: bool = True


def load_backends_config(path: Path) -> BackendsConfig:
    """Load a backend chain definition from a JSON file."""

    data = path.read_text(encoding="utf-8")
    return BackendsConfig.model_validate_json(data)


def backends_from_settings(settings: Settings) -> BackendsConfig:
    """Build the backend configuration, honoring an optional JSON override."""

    if settings.BACKENDS_CONFIG_PATH:
        cfg = load_backends_config(Path(settings.BACKENDS_CONFIG_PATH))
    else:
        cfg = BackendsConfig(
            retry=RetryPolicy(
                base_delay_s=settings.RETRY_BASE_DELAY_S,
                max_delay_s=settings.RETRY_MAX_DELAY_S,
                exponential_base=settings.RETRY_EXPONENTIAL_BASE,
                jitter=settings.RETRY_JITTER,
            )
        )
    if not settings.GEMINI_ENABLE_FALLBACK:
        cfg = cfg.model_copy(update={"enable_fallback": False})
    return cfg
