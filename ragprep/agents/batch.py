"""Batch coordinator: runs the orchestrator over every document of a run."""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any, Protocol

from ragprep.agents.orchestrator import DocumentOrchestrator
from ragprep.agents.safe_runner import SafeAgentRunner
from ragprep.agents.scoring import round_half_up
from ragprep.agents.statistics import AgentStatistics
from ragprep.domain.exceptions import (
    ConfigurationError,
    DocumentReadFailure,
    FatalBatchError,
    PublishFailure,
)
from ragprep.models.enhancement import (
    AddedFieldCount,
    BatchError,
    BatchResult,
    BatchSummary,
    ProposedChange,
    PublishOutcome,
)

if TYPE_CHECKING:
    from ragprep.agents.base_agent import BaseAgent
    from ragprep.agents.orchestrator import DocumentReader
    from ragprep.models.enhancement import Document, DocumentEnhancement
    from ragprep.observability.run_logger import RunLogger

logger = logging.getLogger(__name__)

TOP_ADDED_FIELDS = 10


class ChangeSetPublisher(Protocol):
    async def publish(
        self, changes: list[ProposedChange], summary: BatchSummary
    ) -> PublishOutcome: ...


class BatchCoordinator:
    """Processes documents in order and publishes the successful enhancements.

    Per-document read failures become ``BatchError`` entries; unexpected
    errors end the batch with a structured failure result instead of an
    exception. Only ``ConfigurationError`` is raised to the caller.
    """

    def __init__(
        self,
        run_logger: RunLogger,
        *,
        publisher: ChangeSetPublisher | None = None,
        statistics: AgentStatistics | None = None,
        runner: SafeAgentRunner | None = None,
        reader: DocumentReader | None = None,
        correlation_id: str | None = None,
    ):
        self.run_logger = run_logger
        self.publisher = publisher
        self.statistics = statistics or AgentStatistics()
        self.orchestrator = DocumentOrchestrator(
            runner or SafeAgentRunner(),
            self.statistics,
            reader=reader,
            correlation_id=correlation_id,
        )
        self.correlation_id = correlation_id
        self.logger = logger

    async def process_batch(
        self, documents: list[Document], agents: list[BaseAgent]
    ) -> BatchResult:
        """Run every agent over every document.

        Raises:
            ConfigurationError: If there are no documents or no agents.
        """
        log_path = self.run_logger.open()

        if not documents or not agents:
            self.run_logger.detach()
            what = "documents" if not documents else "agents"
            msg = f"Cannot process a batch without {what}"
            raise ConfigurationError(
                msg, {"documents": len(documents), "agents": len(agents)}
            )

        try:
            return await self._run(documents, agents, str(log_path))
        except Exception as exc:
            fatal = FatalBatchError(
                f"Batch processing failed: {exc}", {"error_type": type(exc).__name__}
            )
            self.logger.error(
                f"[Batch] {fatal.message}",
                extra={"correlation_id": self.correlation_id},
            )
            self.run_logger.log_fatal(exc)
            self.run_logger.finalize({"error": str(exc)})
            return BatchResult(success=False, error=str(exc), run_log_path=str(log_path))

    async def _run(
        self, documents: list[Document], agents: list[BaseAgent], log_path: str
    ) -> BatchResult:
        self.statistics.reset(agent.name for agent in agents)
        self.logger.info(
            f"[Batch] Processing {len(documents)} documents with {len(agents)} agents",
            extra={"correlation_id": self.correlation_id},
        )

        enhancements: list[DocumentEnhancement] = []
        errors: list[BatchError] = []
        for index, document in enumerate(documents, start=1):
            self.logger.info(
                f"[Batch] Document {index}/{len(documents)}: {document.relative_path}",
                extra={"correlation_id": self.correlation_id},
            )
            try:
                enhancements.append(await self.orchestrator.process_document(document, agents))
            except DocumentReadFailure as exc:
                errors.append(
                    BatchError(
                        document=document.relative_path, title=document.title, error=exc.message
                    )
                )

        summary = self._summarize(documents, agents, enhancements, errors)
        summary.change_set = await self._publish(enhancements, summary)

        self.logger.info(
            f"[Batch] Completed: {summary.successful}/{summary.total_documents} documents, "
            f"average score {summary.average_score}",
            extra={"correlation_id": self.correlation_id},
        )
        self.run_logger.finalize(summary.model_dump(mode="json"))
        return BatchResult(
            success=True,
            summary=summary,
            enhancements=enhancements,
            errors=errors,
            run_log_path=log_path,
        )

    def _summarize(
        self,
        documents: list[Document],
        agents: list[BaseAgent],
        enhancements: list[DocumentEnhancement],
        errors: list[BatchError],
    ) -> BatchSummary:
        scores = [item.consolidated_score for item in enhancements]
        field_counts: Counter[str] = Counter()
        for item in enhancements:
            field_counts.update(dict.fromkeys(item.added_fields).keys())

        return BatchSummary(
            total_documents=len(documents),
            successful=len(enhancements),
            failed=len(errors),
            average_score=round_half_up(sum(scores) / len(scores)) if scores else 0,
            total_improvements=sum(len(item.improvements) for item in enhancements),
            total_processing_time_ms=sum(item.total_processing_time_ms for item in enhancements),
            agent_count=len(agents),
            agent_collaborations=len(enhancements) * len(agents),
            top_added_fields=[
                AddedFieldCount(field=name, count=count)
                for name, count in field_counts.most_common(TOP_ADDED_FIELDS)
            ],
            agent_statistics=self.statistics.snapshot(),
        )

    async def _publish(
        self, enhancements: list[DocumentEnhancement], summary: BatchSummary
    ) -> PublishOutcome:
        if self.publisher is None:
            return PublishOutcome.skipped("No change-set publisher configured")
        if not enhancements:
            return PublishOutcome.skipped("No enhancements to propose")

        changes = [ProposedChange.from_enhancement(item) for item in enhancements]
        try:
            outcome = await self.publisher.publish(changes, summary)
        except PublishFailure as exc:
            self.logger.error(
                f"[Batch] Change set could not be published: {exc.message}",
                extra={"correlation_id": self.correlation_id, "details": exc.details},
            )
            return PublishOutcome.failed(exc.message)
        except Exception as exc:
            self.logger.exception(
                "[Batch] Unexpected publisher error",
                extra={"correlation_id": self.correlation_id},
            )
            return PublishOutcome.failed(str(exc))

        if outcome.success:
            self.logger.info(
                f"[Batch] Change set published: {outcome.location_url}",
                extra={"correlation_id": self.correlation_id, "branch": outcome.branch_name},
            )
        return outcome


def summarize_for_log(result: BatchResult) -> dict[str, Any]:
    """Compact view of a batch result for console output."""
    if result.summary is None:
        return {"success": result.success, "error": result.error}
    summary = result.summary
    return {
        "success": result.success,
        "total_documents": summary.total_documents,
        "successful": summary.successful,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "average_score": summary.average_score,
        "total_improvements": summary.total_improvements,
        "change_set": summary.change_set.model_dump() if summary.change_set else None,
        "message": summary.message,
        "run_log": result.run_log_path,
    }
