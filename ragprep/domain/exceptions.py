"""Domain-specific exceptions.

Failures are grouped by the granularity at which they are recovered:

- agent level: ``AgentFailure`` (recorded per document/agent pair)
- document level: ``DocumentReadFailure`` (recorded in the batch errors)
- batch level: ``ConfigurationError`` (raised) and ``FatalBatchError``
  (converted into a structured failure result)
"""

from __future__ import annotations

from typing import Any


class RagPrepError(Exception):
    """Base exception for all enhancement pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(RagPrepError):
    """Raised when a batch is started without documents or without agents."""


class AgentFailure(RagPrepError):
    """Raised when a single agent invocation fails."""

    def __init__(
        self, message: str, *, agent_name: str, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, details)
        self.agent_name = agent_name


class MissingCredentialError(AgentFailure):
    """Raised when an agent's required credential is not configured at all."""

    def __init__(self, credential: str, *, agent_name: str) -> None:
        super().__init__(
            f"{credential} not found in environment variables",
            agent_name=agent_name,
            details={"credential": credential},
        )
        self.credential = credential


class IsolationError(RagPrepError):
    """Raised when an isolated working copy cannot be set up or read."""


class DocumentReadFailure(RagPrepError):
    """Raised when a document's authoritative content cannot be read."""

    def __init__(
        self, message: str, *, document: str, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, details)
        self.document = document


class PublishFailure(RagPrepError):
    """Raised when the change-set publisher cannot create the proposal."""


class FatalBatchError(RagPrepError):
    """Raised for unexpected errors outside the per-document boundaries."""


class InvalidStateTransitionError(RagPrepError):
    """Raised when a document run attempts an illegal state transition."""


class UpstreamServiceError(RagPrepError):
    """Raised when an external HTTP service keeps failing after retries."""

    def __init__(
        self,
        message: str,
        *,
        service: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.service = service
        self.status_code = status_code
