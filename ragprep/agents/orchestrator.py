"""Sequential orchestrator running every agent over one document."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from ragprep.agents.scoring import collect_added_fields, consolidate_score
from ragprep.core.markdown import word_count
from ragprep.domain.exceptions import (
    AgentFailure,
    DocumentReadFailure,
    InvalidStateTransitionError,
)
from ragprep.models.enhancement import (
    AgentInvocationResult,
    ContentSnapshot,
    DocumentEnhancement,
)

if TYPE_CHECKING:
    from ragprep.agents.base_agent import BaseAgent
    from ragprep.agents.safe_runner import SafeAgentRunner
    from ragprep.agents.statistics import AgentStatistics
    from ragprep.models.enhancement import Document

logger = logging.getLogger(__name__)


class DocumentState(str, Enum):
    """Lifecycle of one document within a run."""

    LOADED = "loaded"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[DocumentState, frozenset[DocumentState]] = {
    DocumentState.LOADED: frozenset({DocumentState.RUNNING, DocumentState.FAILED}),
    DocumentState.RUNNING: frozenset({DocumentState.COMPLETED, DocumentState.FAILED}),
    DocumentState.COMPLETED: frozenset(),
    DocumentState.FAILED: frozenset(),
}


class DocumentRun:
    """Tracks the state of one document and rejects illegal transitions."""

    def __init__(self, document: str):
        self.document = document
        self.state = DocumentState.LOADED

    def transition(self, target: DocumentState) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            msg = f"Illegal transition {self.state.value} -> {target.value} for {self.document}"
            raise InvalidStateTransitionError(
                msg, {"from": self.state.value, "to": target.value, "document": self.document}
            )
        self.state = target


class DocumentReader(Protocol):
    async def read(self, document: Document) -> str: ...


class FileDocumentReader:
    """Reads a document's authoritative content from disk in a worker thread."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    async def read(self, document: Document) -> str:
        path = Path(document.absolute_path)
        try:
            return await asyncio.to_thread(path.read_text, encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Cannot read {document.relative_path}: {exc}"
            raise DocumentReadFailure(msg, document=document.relative_path) from exc


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


class DocumentOrchestrator:
    """Runs agents over a document in order, threading content between them.

    Each agent sees the content produced by the previous agents and the front
    matter merged with the metadata proposed so far. A failed agent is
    recorded and the pipeline continues with unchanged content.
    """

    def __init__(
        self,
        runner: SafeAgentRunner,
        statistics: AgentStatistics,
        reader: DocumentReader | None = None,
        correlation_id: str | None = None,
    ):
        self.runner = runner
        self.statistics = statistics
        self.reader = reader or FileDocumentReader()
        self.correlation_id = correlation_id
        self.logger = logger

    async def process_document(
        self, document: Document, agents: list[BaseAgent]
    ) -> DocumentEnhancement:
        """Run every agent over ``document``.

        Raises:
            DocumentReadFailure: If the document content cannot be read.
        """
        run = DocumentRun(document.relative_path)
        try:
            original_content = await self.reader.read(document)
        except DocumentReadFailure:
            run.transition(DocumentState.FAILED)
            self.logger.error(
                f"[Orchestrator] Cannot read {document.relative_path}",
                extra={"correlation_id": self.correlation_id, "document": document.relative_path},
            )
            raise

        run.transition(DocumentState.RUNNING)
        self.logger.info(
            f"[Orchestrator] Processing {document.relative_path} with {len(agents)} agents",
            extra={
                "correlation_id": self.correlation_id,
                "document": document.relative_path,
                "word_count": word_count(original_content),
            },
        )

        current_content = original_content
        metadata: dict[str, Any] = dict(document.frontmatter)
        snapshots = [
            ContentSnapshot(
                stage="original",
                content=original_content,
                word_count=word_count(original_content),
            )
        ]
        results: list[AgentInvocationResult] = []
        improvements: list[str] = []

        for position, agent in enumerate(agents, start=1):
            started = time.perf_counter()
            try:
                outcome = await self.runner.run_safely(
                    agent, document.absolute_path, current_content, metadata
                )
            except AgentFailure as exc:
                elapsed = _elapsed_ms(started)
                self.statistics.record(agent.name, success=False, processing_time_ms=elapsed)
                results.append(
                    AgentInvocationResult(
                        agent_name=agent.name,
                        agent_role=agent.role,
                        processing_time_ms=elapsed,
                        sequence_position=position,
                        error=exc.message,
                    )
                )
                self.logger.warning(
                    f"[Orchestrator] {agent.name} failed on {document.relative_path}: {exc.message}",
                    extra={"correlation_id": self.correlation_id, "agent": agent.name},
                )
                continue

            elapsed = _elapsed_ms(started)
            modified = outcome.changes_content(current_content)
            if modified and outcome.content is not None:
                current_content = outcome.content
                snapshots.append(
                    ContentSnapshot(
                        stage=agent.name,
                        content=current_content,
                        word_count=word_count(current_content),
                    )
                )

            improvements.extend(outcome.improvements)
            metadata.update(outcome.proposed_metadata)
            self.statistics.record(agent.name, success=True, processing_time_ms=elapsed)
            results.append(
                AgentInvocationResult(
                    agent_name=agent.name,
                    agent_role=agent.role,
                    outcome=outcome,
                    processing_time_ms=elapsed,
                    content_modified=modified,
                    sequence_position=position,
                )
            )
            self.logger.info(
                f"[Orchestrator] {agent.name} completed in {elapsed}ms",
                extra={
                    "correlation_id": self.correlation_id,
                    "agent": agent.name,
                    "content_modified": modified,
                    "improvements": len(outcome.improvements),
                },
            )

        run.transition(DocumentState.COMPLETED)
        enhancement = DocumentEnhancement(
            file_path=document.absolute_path,
            relative_path=document.relative_path,
            title=document.title,
            original_content=original_content,
            final_content=current_content,
            content_snapshots=snapshots,
            agent_results=results,
            improvements=improvements,
            consolidated_score=consolidate_score(results),
            added_fields=collect_added_fields(results),
            total_processing_time_ms=sum(result.processing_time_ms for result in results),
        )
        self.logger.info(
            f"[Orchestrator] Finished {document.relative_path}: "
            f"score {enhancement.consolidated_score}, {len(improvements)} improvements",
            extra={"correlation_id": self.correlation_id, "document": document.relative_path},
        )
        return enhancement
