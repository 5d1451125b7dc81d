from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._validators import (
    _optional_api_key,
    _parse_bool,
    _parse_bounded_int,
    validate_model_name,
)

logger = logging.getLogger(__name__)

ENV_FILES = (".env", ".env.local")


class GeminiConfig(BaseModel):
    """Google Generative Language API settings shared by the LLM-backed agents."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_API_KEY", "GEMINI_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"
        ),
    )
    model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
    temperature: float = Field(default=0.3, validation_alias="GEMINI_TEMPERATURE")
    timeout_sec: int = Field(default=60, validation_alias="GEMINI_TIMEOUT_SEC")
    max_retries: int = Field(default=3, validation_alias="GEMINI_MAX_RETRIES")
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        validation_alias="GEMINI_BASE_URL",
    )

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str | None:
        return _optional_api_key(value, name="Gemini")

    @field_validator("model", mode="before")
    @classmethod
    def _validate_model(cls, value: Any) -> str:
        return validate_model_name(str(value or "gemini-2.0-flash").strip())

    @field_validator("temperature", mode="before")
    @classmethod
    def _validate_temperature(cls, value: Any) -> float:
        try:
            temperature = float(str(value if value not in (None, "") else 0.3))
        except ValueError as exc:
            msg = "Temperature must be a valid number"
            raise ValueError(msg) from exc
        if not 0.0 <= temperature <= 2.0:
            msg = "Temperature must be between 0 and 2"
            raise ValueError(msg)
        return temperature

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> int:
        return _parse_bounded_int(value, default=60, minimum=1, maximum=600, label="Gemini timeout")

    @field_validator("max_retries", mode="before")
    @classmethod
    def _validate_retries(cls, value: Any) -> int:
        return _parse_bounded_int(value, default=3, minimum=0, maximum=10, label="Gemini retries")


class TavilyConfig(BaseModel):
    """Tavily web search settings used by the research agent."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_key: str | None = Field(default=None, validation_alias="TAVILY_API_KEY")
    max_results: int = Field(default=5, validation_alias="TAVILY_MAX_RESULTS")
    search_depth: str = Field(default="basic", validation_alias="TAVILY_SEARCH_DEPTH")
    timeout_sec: int = Field(default=30, validation_alias="TAVILY_TIMEOUT_SEC")
    base_url: str = Field(default="https://api.tavily.com", validation_alias="TAVILY_BASE_URL")

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str | None:
        return _optional_api_key(value, name="Tavily")

    @field_validator("max_results", mode="before")
    @classmethod
    def _validate_max_results(cls, value: Any) -> int:
        return _parse_bounded_int(
            value, default=5, minimum=1, maximum=20, label="Tavily max results"
        )

    @field_validator("search_depth", mode="before")
    @classmethod
    def _validate_depth(cls, value: Any) -> str:
        depth = str(value or "basic").strip().lower()
        if depth not in {"basic", "advanced"}:
            msg = f"Invalid Tavily search depth: {value}. Must be 'basic' or 'advanced'"
            raise ValueError(msg)
        return depth

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> int:
        return _parse_bounded_int(value, default=30, minimum=1, maximum=300, label="Tavily timeout")


class GitHubConfig(BaseModel):
    """Target repository for the enhancement pull request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str | None = Field(default=None, validation_alias="GITHUB_TOKEN")
    owner: str | None = Field(default=None, validation_alias="GITHUB_OWNER")
    repo: str | None = Field(default=None, validation_alias="GITHUB_REPO")
    create_pr: bool = Field(default=False, validation_alias="RAG_CREATE_PR")
    api_url: str = Field(default="https://api.github.com", validation_alias="GITHUB_API_URL")
    timeout_sec: int = Field(default=30, validation_alias="GITHUB_TIMEOUT_SEC")

    @field_validator("token", mode="before")
    @classmethod
    def _validate_token(cls, value: Any) -> str | None:
        return _optional_api_key(value, name="GitHub")

    @field_validator("owner", "repo", mode="before")
    @classmethod
    def _validate_slug(cls, value: Any, info: ValidationInfo) -> str | None:
        if value in (None, ""):
            return None
        slug = str(value).strip()
        if "/" in slug or any(ch.isspace() for ch in slug):
            msg = f"GitHub {info.field_name} must be a single path segment"
            raise ValueError(msg)
        return slug or None

    @field_validator("create_pr", mode="before")
    @classmethod
    def _validate_create_pr(cls, value: Any) -> bool:
        return _parse_bool(value, default=False)

    @field_validator("api_url", mode="before")
    @classmethod
    def _validate_api_url(cls, value: Any) -> str:
        url = str(value or "https://api.github.com").strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            msg = "GitHub API URL must start with http:// or https://"
            raise ValueError(msg)
        return url

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> int:
        return _parse_bounded_int(value, default=30, minimum=1, maximum=300, label="GitHub timeout")

    @property
    def is_ready(self) -> bool:
        return bool(self.create_pr and self.token and self.owner and self.repo)


class AgentSelectionConfig(BaseModel):
    """Which enhancement agents run, and how many at most."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    seo: bool = Field(default=True, validation_alias="RAG_AGENT_SEO")
    taxonomy: bool = Field(default=True, validation_alias="RAG_AGENT_TOPOLOGY")
    chunking: bool = Field(default=True, validation_alias="RAG_AGENT_CHUNKING")
    research: bool = Field(default=True, validation_alias="RAG_AGENT_RESEARCH")
    max_agents: int = Field(default=6, validation_alias="RAG_MAX_AGENTS")
    agent_timeout_sec: float | None = Field(default=None, validation_alias="RAG_AGENT_TIMEOUT_SEC")

    @field_validator("seo", "taxonomy", "chunking", "research", mode="before")
    @classmethod
    def _validate_flags(cls, value: Any) -> bool:
        return _parse_bool(value, default=True)

    @field_validator("max_agents", mode="before")
    @classmethod
    def _validate_max_agents(cls, value: Any) -> int:
        return _parse_bounded_int(value, default=6, minimum=1, maximum=6, label="Max agents")

    @field_validator("agent_timeout_sec", mode="before")
    @classmethod
    def _validate_agent_timeout(cls, value: Any) -> float | None:
        if value in (None, ""):
            return None
        try:
            timeout = float(str(value))
        except ValueError as exc:
            msg = "Agent timeout must be a valid number"
            raise ValueError(msg) from exc
        if timeout <= 0:
            msg = "Agent timeout must be positive"
            raise ValueError(msg)
        return timeout


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    docs_path: str = Field(default="docs-enhanced", validation_alias="RAG_DOCS_PATH")
    log_dir: str = Field(default="logs/runs", validation_alias="RAG_LOG_DIR")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    skip_prompt: bool = Field(default=False, validation_alias="RAG_SKIP_PROMPT")
    reenhance_after_hours: int = Field(default=24, validation_alias="RAG_REENHANCE_AFTER_HOURS")
    environment: str = Field(
        default="development", validation_alias=AliasChoices("RAG_ENVIRONMENT", "ENVIRONMENT")
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        log_level = str(value or "INFO").upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_levels:
            msg = f"Invalid log level: {value}. Must be one of {valid_levels}"
            raise ValueError(msg)
        return log_level

    @field_validator("docs_path", "log_dir", mode="before")
    @classmethod
    def _validate_path(cls, value: Any, info: ValidationInfo) -> str:
        default = cls.model_fields[info.field_name].default
        path = str(value if value not in (None, "") else default).strip()
        if "\x00" in path:
            msg = f"{info.field_name.replace('_', ' ').capitalize()} contains invalid characters"
            raise ValueError(msg)
        return path

    @field_validator("skip_prompt", mode="before")
    @classmethod
    def _validate_skip_prompt(cls, value: Any) -> bool:
        return _parse_bool(value, default=False)

    @field_validator("reenhance_after_hours", mode="before")
    @classmethod
    def _validate_reenhance(cls, value: Any) -> int:
        return _parse_bounded_int(
            value, default=24, minimum=0, maximum=24 * 365, label="Re-enhance window (hours)"
        )

    @field_validator("environment", mode="before")
    @classmethod
    def _validate_environment(cls, value: Any) -> str:
        env = str(value or "development").strip().lower()
        if env not in {"development", "production", "test"}:
            msg = f"Invalid environment: {env}. Must be development, production or test"
            raise ValueError(msg)
        return env


@dataclass(frozen=True)
class AppConfig:
    gemini: GeminiConfig
    tavily: TavilyConfig
    github: GitHubConfig
    agents: AgentSelectionConfig
    runtime: RuntimeConfig

    def missing_credentials(self) -> dict[str, str]:
        """Map each enabled capability lacking its credential to the variable it needs."""
        missing: dict[str, str] = {}
        if not self.gemini.api_key and (
            self.agents.seo or self.agents.taxonomy or self.agents.chunking
        ):
            missing["gemini"] = "GOOGLE_API_KEY"
        if not self.tavily.api_key and self.agents.research:
            missing["tavily"] = "TAVILY_API_KEY"
        if self.github.create_pr and not self.github.token:
            missing["github"] = "GITHUB_TOKEN"
        return missing


class Settings(BaseSettings):
    """Application settings loaded from the environment and ``.env``/``.env.local``.

    Nested models are populated by matching validation_alias on each field.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=ENV_FILES,
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    tavily: TavilyConfig = Field(default_factory=TavilyConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    agents: AgentSelectionConfig = Field(default_factory=AgentSelectionConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @classmethod
    def _env_sources(cls) -> dict[str, Any]:
        """Flat variables from the env files (later files win) overlaid by ``os.environ``."""
        merged: dict[str, Any] = {}
        for env_file in ENV_FILES:
            if Path(env_file).is_file():
                merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        merged.update(os.environ)
        return merged

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: Any) -> Any:
        """Build nested config objects from flat environment variables.

        Constructor arguments take precedence over the environment.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source = {**cls._env_sources(), **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            for nested_field_name, nested_field in annotation.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if nested_data:
                if field_name in result and isinstance(result[field_name], dict):
                    result[field_name] = {**nested_data, **result[field_name]}
                elif field_name not in result:
                    result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        """Resolve the environment value for a field using its aliases, first match wins."""
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            aliases.extend(choice for choice in alias.choices if isinstance(choice, str))
        elif isinstance(alias, str):
            aliases.append(alias)
        if field.alias:
            aliases.append(field.alias)

        for name in aliases:
            if data.get(name) not in (None, ""):
                return data[name]
        return None

    def as_app_config(self) -> AppConfig:
        return AppConfig(
            gemini=self.gemini,
            tavily=self.tavily,
            github=self.github,
            agents=self.agents,
            runtime=self.runtime,
        )


def load_config(**overrides: Any) -> AppConfig:
    """Load application configuration.

    Sources, lowest precedence first: ``.env``, ``.env.local``, process
    environment, keyword overrides (section name to field mapping).

    Raises:
        RuntimeError: If configuration validation fails.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise RuntimeError(msg) from exc

    config = settings.as_app_config()
    logger.debug(
        "config_loaded",
        extra={
            "environment": config.runtime.environment,
            "docs_path": config.runtime.docs_path,
            "missing_credentials": sorted(config.missing_credentials()),
        },
    )
    return config
