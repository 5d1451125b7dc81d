"""Data models for LLM interactions backed by Pydantic validation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LLMCallResult(BaseModel):
    """Result of a text generation call."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(description="High-level result status (ok, error).")
    model: str | None = Field(default=None, description="Model that produced the response.")
    response_text: str | None = Field(
        default=None, description="Primary text response returned by the provider."
    )
    tokens_prompt: int | None = Field(
        default=None, description="Prompt tokens consumed by the request."
    )
    tokens_completion: int | None = Field(
        default=None, description="Completion tokens produced by the request."
    )
    latency_ms: int | None = Field(
        default=None, description="Observed latency for the request in milliseconds."
    )
    finish_reason: str | None = Field(
        default=None, description="Provider-reported reason the generation stopped."
    )
    error_text: str | None = Field(default=None, description="Error message when the call fails.")

    @property
    def ok(self) -> bool:
        return self.status == "ok" and bool(self.response_text)
