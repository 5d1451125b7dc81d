"""Pytest configuration and shared fixtures."""

import logging
from unittest.mock import AsyncMock

import pytest

from ragprep.adapters.llm import LLMClientProtocol

CONFIG_ENV_VARS = (
    "GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_GENERATIVE_AI_API_KEY",
    "GEMINI_MODEL",
    "TAVILY_API_KEY",
    "GITHUB_TOKEN",
    "GITHUB_OWNER",
    "GITHUB_REPO",
    "RAG_CREATE_PR",
    "RAG_AGENT_SEO",
    "RAG_AGENT_TOPOLOGY",
    "RAG_AGENT_CHUNKING",
    "RAG_AGENT_RESEARCH",
    "RAG_MAX_AGENTS",
    "RAG_AGENT_TIMEOUT_SEC",
    "RAG_DOCS_PATH",
    "RAG_LOG_DIR",
    "LOG_LEVEL",
    "RAG_SKIP_PROMPT",
    "RAG_REENHANCE_AFTER_HOURS",
    "RAG_ENVIRONMENT",
    "ENVIRONMENT",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate configuration from the developer's environment and .env files."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture(autouse=True)
def _reset_ragprep_logger():
    """Drop handlers a failing test may have left on the package logger."""
    package_logger = logging.getLogger("ragprep")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    for handler in list(package_logger.handlers):
        if handler not in handlers:
            package_logger.removeHandler(handler)
    package_logger.setLevel(level)


@pytest.fixture
def docs_dir(tmp_path):
    path = tmp_path / "docs"
    path.mkdir()
    return path


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "logs"


@pytest.fixture
def mock_llm():
    llm = AsyncMock(spec=LLMClientProtocol)
    llm.provider_name = "test"
    return llm
