"""LLM client abstraction used by the enhancement agents.

Key components:
- LLMClientProtocol: interface the agents depend on
- GeminiClient: Google Generative Language REST client
- LLMCallResult: normalized call outcome
"""

from ragprep.adapters.llm.gemini_client import GeminiClient
from ragprep.adapters.llm.models import LLMCallResult
from ragprep.adapters.llm.protocol import LLMClientProtocol

__all__ = [
    "GeminiClient",
    "LLMCallResult",
    "LLMClientProtocol",
]
