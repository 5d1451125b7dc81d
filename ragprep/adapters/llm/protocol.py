"""LLM client protocol shared by the agents that call a text generation model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ragprep.adapters.llm.models import LLMCallResult


@runtime_checkable
class LLMClientProtocol(Protocol):
    """Interface every LLM client implements.

    Agents only depend on this protocol, so tests can substitute an
    ``AsyncMock`` and alternative providers can be added without touching
    agent code.
    """

    @property
    def provider_name(self) -> str:
        """Return the provider identifier (e.g. ``"gemini"``)."""
        ...

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        json_mode: bool = True,
    ) -> LLMCallResult:
        """Generate a completion for a single prompt.

        Args:
            prompt: Full prompt text.
            temperature: Sampling temperature override.
            max_output_tokens: Cap on generated tokens.
            json_mode: Ask the provider for a JSON response body.

        Returns:
            LLMCallResult with ``status="ok"`` and the response text, or
            ``status="error"`` with ``error_text`` once retries are exhausted.

        Raises:
            RuntimeError: If the client has been closed.
        """
        ...

    async def aclose(self) -> None:
        """Release HTTP resources; further ``generate`` calls raise RuntimeError."""
        ...
