"""Gemini client over the Google Generative Language REST API."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from ragprep.adapters.http_retry import retry_with_backoff
from ragprep.adapters.llm.models import LLMCallResult
from ragprep.domain.exceptions import UpstreamServiceError

if TYPE_CHECKING:
    from typing import Self

    from ragprep.config.settings import GeminiConfig

logger = logging.getLogger(__name__)


class GeminiClient:
    """Async client for ``models/{model}:generateContent``."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_sec: int = 60,
        max_retries: int = 3,
        temperature: float = 0.3,
        backoff_base: float = 1.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            msg = "Gemini API key is required"
            raise ValueError(msg)
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_sec, connect=10.0)
        self._max_retries = max_retries
        self._temperature = temperature
        self._backoff_base = backoff_base
        self._client = http_client
        self._owns_client = http_client is None
        self._closed = False

    @classmethod
    def from_config(cls, config: GeminiConfig) -> GeminiClient:
        if not config.api_key:
            msg = "Gemini API key is required"
            raise ValueError(msg)
        return cls(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout_sec=config.timeout_sec,
            max_retries=config.max_retries,
            temperature=config.temperature,
        )

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def model(self) -> str:
        return self._model

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._closed:
            msg = "Client has been closed"
            raise RuntimeError(msg)
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._client

    def _build_payload(
        self, prompt: str, temperature: float | None, max_output_tokens: int | None, json_mode: bool
    ) -> dict[str, Any]:
        generation_config: dict[str, Any] = {
            "temperature": self._temperature if temperature is None else temperature,
        }
        if max_output_tokens is not None:
            generation_config["maxOutputTokens"] = max_output_tokens
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        json_mode: bool = True,
    ) -> LLMCallResult:
        client = self._ensure_client()
        payload = self._build_payload(prompt, temperature, max_output_tokens, json_mode)
        url = f"{self._base_url}/models/{self._model}:generateContent"
        started = time.perf_counter()

        async def _call() -> dict[str, Any]:
            response = await client.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self._api_key},
                timeout=self._timeout,
            )
            response.raise_for_status()
            return response.json()

        try:
            data = await retry_with_backoff(
                _call,
                service="gemini",
                operation_name="generate_content",
                max_retries=self._max_retries,
                base_delay=self._backoff_base,
            )
        except UpstreamServiceError as exc:
            latency_ms = int((time.perf_counter() - started) * 1000)
            logger.warning(
                "gemini_generate_failed",
                extra={
                    "model": self._model,
                    "status_code": exc.status_code,
                    "latency_ms": latency_ms,
                    "error": exc.message,
                },
            )
            return LLMCallResult(
                status="error", model=self._model, latency_ms=latency_ms, error_text=exc.message
            )

        latency_ms = int((time.perf_counter() - started) * 1000)
        return self._parse_response(data, latency_ms)

    def _parse_response(self, data: dict[str, Any], latency_ms: int) -> LLMCallResult:
        candidates = data.get("candidates") or []
        usage = data.get("usageMetadata") or {}
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            return LLMCallResult(
                status="error",
                model=self._model,
                latency_ms=latency_ms,
                error_text=f"No candidates returned (block reason: {block_reason or 'unknown'})",
            )

        first = candidates[0]
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        logger.debug(
            "gemini_generate_ok",
            extra={
                "model": self._model,
                "latency_ms": latency_ms,
                "tokens_prompt": usage.get("promptTokenCount"),
                "tokens_completion": usage.get("candidatesTokenCount"),
            },
        )
        return LLMCallResult(
            status="ok" if text else "error",
            model=data.get("modelVersion") or self._model,
            response_text=text or None,
            tokens_prompt=usage.get("promptTokenCount"),
            tokens_completion=usage.get("candidatesTokenCount"),
            latency_ms=latency_ms,
            finish_reason=first.get("finishReason"),
            error_text=None if text else "Empty response text",
        )
