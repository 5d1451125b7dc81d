"""Registry of enhancement agents and per-run agent assembly."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ragprep.agents.chunking_optimizer_agent import ChunkingOptimizerAgent
from ragprep.agents.content_research_agent import ContentResearchAgent
from ragprep.agents.seo_metadata_agent import SEOMetadataAgent
from ragprep.agents.topic_taxonomy_agent import TopicTaxonomyAgent
from ragprep.models.enhancement import AgentDescriptor

if TYPE_CHECKING:
    from ragprep.adapters.llm import LLMClientProtocol
    from ragprep.adapters.search import TavilyClient
    from ragprep.agents.base_agent import BaseAgent
    from ragprep.config.settings import AgentSelectionConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentDependencies:
    """Clients shared by the agents of one run. Missing clients stay None."""

    llm_client: LLMClientProtocol | None = None
    search_client: TavilyClient | None = None
    correlation_id: str | None = None


AgentFactory = Callable[[AgentDependencies], "BaseAgent"]


@dataclass(frozen=True)
class RegisteredAgent:
    selection_key: str
    name: str
    factory: AgentFactory


def _seo(deps: AgentDependencies) -> BaseAgent:
    return SEOMetadataAgent(deps.llm_client, correlation_id=deps.correlation_id)


def _taxonomy(deps: AgentDependencies) -> BaseAgent:
    return TopicTaxonomyAgent(deps.llm_client, correlation_id=deps.correlation_id)


def _chunking(deps: AgentDependencies) -> BaseAgent:
    return ChunkingOptimizerAgent(deps.llm_client, correlation_id=deps.correlation_id)


def _research(deps: AgentDependencies) -> BaseAgent:
    return ContentResearchAgent(
        deps.search_client, deps.llm_client, correlation_id=deps.correlation_id
    )


DEFAULT_AGENTS: tuple[RegisteredAgent, ...] = (
    RegisteredAgent("seo", SEOMetadataAgent.name, _seo),
    RegisteredAgent("taxonomy", TopicTaxonomyAgent.name, _taxonomy),
    RegisteredAgent("chunking", ChunkingOptimizerAgent.name, _chunking),
    RegisteredAgent("research", ContentResearchAgent.name, _research),
)


class AgentRegistry:
    """Ordered catalogue of agents available to a run."""

    def __init__(self, agents: tuple[RegisteredAgent, ...] = DEFAULT_AGENTS):
        names = [agent.name for agent in agents]
        if len(set(names)) != len(names):
            msg = f"Agent names must be unique: {names}"
            raise ValueError(msg)
        self._agents = agents

    @property
    def names(self) -> list[str]:
        return [agent.name for agent in self._agents]

    def assemble(
        self, selection: AgentSelectionConfig, deps: AgentDependencies
    ) -> list[BaseAgent]:
        """Instantiate the enabled agents in registry order, capped at ``max_agents``."""
        enabled = [
            entry for entry in self._agents if getattr(selection, entry.selection_key, False)
        ]
        if len(enabled) > selection.max_agents:
            logger.warning(
                "[Registry] %d agents enabled, limiting to %d",
                len(enabled),
                selection.max_agents,
                extra={"correlation_id": deps.correlation_id},
            )
            enabled = enabled[: selection.max_agents]

        agents = [entry.factory(deps) for entry in enabled]
        logger.info(
            "[Registry] Assembled %d agents: %s",
            len(agents),
            ", ".join(agent.name for agent in agents),
            extra={"correlation_id": deps.correlation_id},
        )
        return agents


def describe(agents: list[BaseAgent]) -> list[AgentDescriptor]:
    return [
        AgentDescriptor(name=agent.name, role=agent.role, position=index)
        for index, agent in enumerate(agents)
    ]
