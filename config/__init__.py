"""Configuration package for the interview orchestration services."""
from .backends import (
    DEFAULT_BACKENDS,
    BackendRoute,
    BackendsConfig,
    GenerationSettings,
    RetryPolicy,
    SafetySetting,
    backends_from_settings,
    load_backends_config,
)
from .settings import Settings, settings

__all__ = [
    "DEFAULT_BACKENDS",
    "BackendRoute",
    "BackendsConfig",
    "GenerationSettings",
    "RetryPolicy",
    "SafetySetting",
    "backends_from_settings",
    "load_backends_config",
    "Settings",
    "settings",
]
