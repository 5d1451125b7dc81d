"""Multi-agent enhancement pipeline.

Specialized agents each propose one kind of improvement for a Markdown
document:

- SEOMetadataAgent: search-oriented front matter
- TopicTaxonomyAgent: topics, difficulty and audience classification
- ChunkingOptimizerAgent: restructures sections for retrieval-sized chunks
- ContentResearchAgent: validates content against web sources

The DocumentOrchestrator runs them in order over one document through the
SafeAgentRunner; the BatchCoordinator runs the orchestrator over a batch and
hands the results to a change-set publisher.
"""

from ragprep.agents.base_agent import BaseAgent, DocumentHandle
from ragprep.agents.batch import BatchCoordinator, ChangeSetPublisher
from ragprep.agents.chunking_optimizer_agent import ChunkingOptimizerAgent
from ragprep.agents.content_research_agent import ContentResearchAgent
from ragprep.agents.orchestrator import DocumentOrchestrator, DocumentState
from ragprep.agents.registry import AgentDependencies, AgentRegistry
from ragprep.agents.safe_runner import SafeAgentRunner, WorkingCopyArena
from ragprep.agents.seo_metadata_agent import SEOMetadataAgent
from ragprep.agents.statistics import AgentStatistics
from ragprep.agents.team import EnhancementTeam
from ragprep.agents.topic_taxonomy_agent import TopicTaxonomyAgent

__all__ = [
    "AgentDependencies",
    "AgentRegistry",
    "AgentStatistics",
    "BaseAgent",
    "BatchCoordinator",
    "ChangeSetPublisher",
    "ChunkingOptimizerAgent",
    "ContentResearchAgent",
    "DocumentHandle",
    "DocumentOrchestrator",
    "DocumentState",
    "EnhancementTeam",
    "SEOMetadataAgent",
    "SafeAgentRunner",
    "TopicTaxonomyAgent",
    "WorkingCopyArena",
]
