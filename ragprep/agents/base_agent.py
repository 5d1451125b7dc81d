"""Base agent class defining the common interface for all enhancement agents."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from ragprep.core import frontmatter
from ragprep.core.json_utils import extract_json
from ragprep.core.logging_utils import truncate_log_content
from ragprep.core.markdown import extract_headings
from ragprep.domain.exceptions import MissingCredentialError

if TYPE_CHECKING:
    from ragprep.adapters.llm import LLMClientProtocol
    from ragprep.core.frontmatter import ParsedDocument
    from ragprep.models.enhancement import EnhancementOutcome

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentHandle(Protocol):
    """Addressable copy of a document handed to an agent.

    Agents use ``key``/``source_path`` for identification and logging; an
    agent allowed to restructure content writes its rewritten document back
    through ``write``.
    """

    @property
    def key(self) -> str: ...

    @property
    def source_path(self) -> str: ...

    async def read(self) -> str: ...

    async def write(self, content: str) -> None: ...


class BaseAgent(ABC):
    """Base class for all agents in the enhancement pipeline.

    Each agent should:
    - Have a single, well-defined capability
    - Return an ``EnhancementOutcome`` or raise ``AgentFailure``
    - Fall back to a deterministic heuristic when its upstream call fails
    - Log important events with correlation IDs
    """

    name: ClassVar[str]
    role: ClassVar[str]
    may_modify_content: ClassVar[bool] = False

    def __init__(self, correlation_id: str | None = None):
        """Initialize the agent.

        Args:
            correlation_id: Optional correlation ID for tracing
        """
        self.correlation_id = correlation_id or "unknown"
        self.logger = logger

    @abstractmethod
    async def analyze(
        self, handle: DocumentHandle, content: str, current_metadata: dict[str, Any]
    ) -> EnhancementOutcome:
        """Analyze one document.

        Args:
            handle: Isolated handle for the document being processed
            content: Full current document text (front matter and body)
            current_metadata: Metadata known so far for this document

        Returns:
            EnhancementOutcome with proposed metadata and improvements

        Raises:
            AgentFailure: If the analysis cannot be performed at all
        """

    def log_info(self, message: str, **kwargs: Any) -> None:
        """Log an info message with correlation ID."""
        self.logger.info(
            f"[{self.name}] {message}",
            extra={"correlation_id": self.correlation_id, "agent": self.name, **kwargs},
        )

    def log_warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning with correlation ID."""
        self.logger.warning(
            f"[{self.name}] {message}",
            extra={"correlation_id": self.correlation_id, "agent": self.name, **kwargs},
        )

    def log_error(self, message: str, **kwargs: Any) -> None:
        """Log an error with correlation ID."""
        self.logger.error(
            f"[{self.name}] {message}",
            extra={"correlation_id": self.correlation_id, "agent": self.name, **kwargs},
        )

    @staticmethod
    def resolve_title(parsed: ParsedDocument, current_metadata: dict[str, Any]) -> str:
        """Pick a display title from metadata, then the first heading."""
        for source in (current_metadata, parsed.data):
            title = source.get("title")
            if isinstance(title, str) and title.strip():
                return title.strip()
        headings = extract_headings(parsed.body)
        return headings[0].text if headings else "Untitled"


class LLMBackedAgent(BaseAgent):
    """Agent whose primary analysis is a JSON-producing LLM call."""

    credential_name: ClassVar[str] = "GOOGLE_API_KEY"

    def __init__(self, llm_client: LLMClientProtocol | None, correlation_id: str | None = None):
        super().__init__(correlation_id=correlation_id)
        self._llm = llm_client

    def _require_llm(self) -> LLMClientProtocol:
        if self._llm is None:
            self.log_error(f"{self.credential_name} not found in environment variables")
            raise MissingCredentialError(self.credential_name, agent_name=self.name)
        return self._llm

    async def _generate_json(self, prompt: str) -> dict[str, Any] | None:
        """Call the LLM and parse a JSON object, returning None on any upstream problem."""
        llm = self._require_llm()
        result = await llm.generate(prompt, json_mode=True)
        if not result.ok:
            self.log_warning(
                "LLM call failed, using heuristic analysis",
                error=result.error_text,
                latency_ms=result.latency_ms,
            )
            return None

        parsed = extract_json(result.response_text or "")
        if parsed is None:
            self.log_warning(
                "LLM returned malformed JSON, using heuristic analysis",
                response_preview=truncate_log_content(result.response_text, 200),
            )
        return parsed

    @staticmethod
    def parse_document(content: str) -> ParsedDocument:
        return frontmatter.parse(content)
