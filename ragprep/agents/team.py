"""Enhancement team: filters documents, assembles agents and reports a run."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from ragprep.agents.batch import BatchCoordinator
from ragprep.agents.registry import AgentDependencies, AgentRegistry, describe
from ragprep.agents.safe_runner import SafeAgentRunner
from ragprep.agents.statistics import AgentStatistics
from ragprep.models.enhancement import AgentDescriptor, BatchResult, BatchSummary
from ragprep.observability.run_logger import RunLogger

if TYPE_CHECKING:
    from pathlib import Path

    from ragprep.agents.base_agent import BaseAgent
    from ragprep.agents.batch import ChangeSetPublisher
    from ragprep.agents.orchestrator import DocumentReader
    from ragprep.config.settings import AgentSelectionConfig
    from ragprep.models.enhancement import Document

logger = logging.getLogger(__name__)

ALL_SKIPPED_MESSAGE = "All files already enhanced within {hours} hours"


class TeamStatus(BaseModel):
    """Snapshot of the team's configuration and last run."""

    model_config = ConfigDict(frozen=True)

    name: str
    agent_count: int
    max_agents: int
    agents: list[AgentDescriptor] = Field(default_factory=list)
    initialized: bool
    capacity: str
    last_run: datetime | None = None


class EnhancementTeam:
    """Runs the multi-agent enhancement workflow over discovered documents."""

    def __init__(
        self,
        selection: AgentSelectionConfig,
        deps: AgentDependencies,
        *,
        log_dir: str | Path,
        registry: AgentRegistry | None = None,
        publisher: ChangeSetPublisher | None = None,
        reader: DocumentReader | None = None,
        reenhance_after_hours: int = 24,
        name: str = "RAG Documentation Enhancement Team",
    ):
        self.name = name
        self.selection = selection
        self.deps = deps
        self.log_dir = log_dir
        self.registry = registry or AgentRegistry()
        self.publisher = publisher
        self.reader = reader
        self.reenhance_after_hours = reenhance_after_hours
        self.agents: list[BaseAgent] = []
        self.statistics = AgentStatistics()
        self.last_run: datetime | None = None

    def initialize(self) -> list[BaseAgent]:
        self.agents = self.registry.assemble(self.selection, self.deps)
        logger.info(
            f"[Team] Initialized with {len(self.agents)} agents",
            extra={
                "correlation_id": self.deps.correlation_id,
                "agents": [agent.name for agent in self.agents],
            },
        )
        return self.agents

    async def process_documents(self, documents: list[Document]) -> BatchResult:
        """Enhance every document that needs it and log a run report.

        Raises:
            ConfigurationError: If no agents are enabled for a non-empty batch.
        """
        to_enhance = [doc for doc in documents if doc.needs_enhancement]
        skipped = len(documents) - len(to_enhance)
        self.last_run = datetime.now(UTC)

        if documents and not to_enhance:
            logger.info(
                "[Team] No enhancement needed",
                extra={"correlation_id": self.deps.correlation_id, "skipped": skipped},
            )
            return BatchResult(
                success=True,
                summary=BatchSummary(
                    skipped=skipped,
                    agent_count=len(self.agents),
                    message=ALL_SKIPPED_MESSAGE.format(hours=self.reenhance_after_hours),
                ),
            )

        if not self.agents:
            self.initialize()

        logger.info(
            f"[Team] Processing {len(to_enhance)} files through {len(self.agents)} agents "
            f"({len(to_enhance) * len(self.agents)} operations)",
            extra={"correlation_id": self.deps.correlation_id},
        )
        coordinator = BatchCoordinator(
            RunLogger(self.log_dir),
            publisher=self.publisher,
            statistics=self.statistics,
            runner=SafeAgentRunner(timeout_sec=self.selection.agent_timeout_sec),
            reader=self.reader,
            correlation_id=self.deps.correlation_id,
        )
        result = await coordinator.process_batch(to_enhance, self.agents)

        if result.success and result.summary is not None:
            result.summary.skipped = skipped
            self.log_report(result)
        else:
            logger.error(
                f"[Team] Multi-agent workflow failed: {result.error}",
                extra={"correlation_id": self.deps.correlation_id},
            )
        return result

    def log_report(self, result: BatchResult) -> None:
        summary = result.summary
        if summary is None:
            return
        lines = [
            "MULTI-AGENT WORKFLOW RESULTS",
            f"Documents processed: {summary.total_documents}",
            f"Successfully enhanced: {summary.successful}",
            f"Skipped (recently enhanced): {summary.skipped}",
            f"Errors encountered: {summary.failed}",
            f"Active agents: {summary.agent_count}",
            f"Average score: {summary.average_score}/100",
            f"Agent collaborations: {summary.agent_collaborations}",
            "Agent performance:",
        ]
        for agent_name, stats in summary.agent_statistics.items():
            lines.append(
                f"  {agent_name}: {stats.successful}/{stats.total} files "
                f"({stats.success_rate}% success, avg {stats.average_processing_time_ms}ms)"
            )

        change_set = summary.change_set
        if change_set is not None and change_set.success:
            lines += [
                f"Pull request: #{change_set.identifier} {change_set.location_url}",
                f"Branch: {change_set.branch_name}",
                f"Status: {change_set.status}",
            ]
        elif change_set is not None:
            lines.append(f"Change set {change_set.status}: {change_set.error}")

        logger.info(
            "[Team] " + "\n".join(lines),
            extra={"correlation_id": self.deps.correlation_id},
        )

    def status(self) -> TeamStatus:
        return TeamStatus(
            name=self.name,
            agent_count=len(self.agents),
            max_agents=self.selection.max_agents,
            agents=describe(self.agents),
            initialized=bool(self.agents),
            capacity=f"{len(self.agents)}/{self.selection.max_agents} agents",
            last_run=self.last_run,
        )
