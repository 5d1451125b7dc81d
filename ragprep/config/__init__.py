from __future__ import annotations

from ._validators import validate_model_name
from .settings import (
    AgentSelectionConfig,
    AppConfig,
    GeminiConfig,
    GitHubConfig,
    RuntimeConfig,
    Settings,
    TavilyConfig,
    load_config,
)

__all__ = [
    "AgentSelectionConfig",
    "AppConfig",
    "GeminiConfig",
    "GitHubConfig",
    "RuntimeConfig",
    "Settings",
    "TavilyConfig",
    "load_config",
    "validate_model_name",
]
