"""Tests for agent assembly and the enhancement team workflow."""

import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from ragprep.agents.chunking_optimizer_agent import ChunkingOptimizerAgent
from ragprep.agents.content_research_agent import ContentResearchAgent
from ragprep.agents.registry import (
    AgentDependencies,
    AgentRegistry,
    RegisteredAgent,
    describe,
)
from ragprep.agents.seo_metadata_agent import SEOMetadataAgent
from ragprep.agents.team import EnhancementTeam
from ragprep.agents.topic_taxonomy_agent import TopicTaxonomyAgent
from ragprep.config.settings import AgentSelectionConfig
from tests.fakes import InMemoryReader, StaticAgent, make_document

GUIDE = "# Guide\n\nBody text.\n"


def _static_factory(name):
    def factory(deps):
        return StaticAgent(name, metadata={"seoScore": 80}, improvements=[f"{name} ran"])

    return factory


def _static_registry(*names):
    return AgentRegistry(tuple(RegisteredAgent("seo", name, _static_factory(name)) for name in names))


class TestAgentRegistry(unittest.TestCase):
    def test_default_order(self):
        agents = AgentRegistry().assemble(AgentSelectionConfig(), AgentDependencies())

        self.assertEqual(
            [type(agent) for agent in agents],
            [SEOMetadataAgent, TopicTaxonomyAgent, ChunkingOptimizerAgent, ContentResearchAgent],
        )

    def test_disabled_agents_are_skipped(self):
        selection = AgentSelectionConfig(seo=False, research=False)

        agents = AgentRegistry().assemble(selection, AgentDependencies(correlation_id="cid"))

        self.assertEqual(
            [agent.name for agent in agents],
            [TopicTaxonomyAgent.name, ChunkingOptimizerAgent.name],
        )
        self.assertTrue(all(agent.correlation_id == "cid" for agent in agents))

    def test_max_agents_caps_in_registry_order(self):
        selection = AgentSelectionConfig(max_agents=2)

        with self.assertLogs("ragprep.agents.registry", level="WARNING"):
            agents = AgentRegistry().assemble(selection, AgentDependencies())

        self.assertEqual(
            [agent.name for agent in agents], [SEOMetadataAgent.name, TopicTaxonomyAgent.name]
        )

    def test_duplicate_names_are_rejected(self):
        with self.assertRaises(ValueError):
            _static_registry("same", "same")

    def test_describe_positions(self):
        descriptors = describe([StaticAgent("a", role="R1"), StaticAgent("b", role="R2")])

        self.assertEqual([(d.name, d.role, d.position) for d in descriptors], [
            ("a", "R1", 0),
            ("b", "R2", 1),
        ])


class TestEnhancementTeam(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = TemporaryDirectory()
        self.log_dir = Path(self._tmp.name) / "logs"

    def tearDown(self):
        self._tmp.cleanup()

    def _team(self, registry, contents=None, **kwargs):
        return EnhancementTeam(
            AgentSelectionConfig(),
            AgentDependencies(correlation_id="team-test"),
            log_dir=self.log_dir,
            registry=registry,
            reader=InMemoryReader(contents or {"guide.md": GUIDE}),
            **kwargs,
        )

    async def test_all_documents_skipped(self):
        team = self._team(_static_registry("a"), reenhance_after_hours=12)
        documents = [make_document("guide.md", needs_enhancement=False)]

        result = await team.process_documents(documents)

        self.assertTrue(result.success)
        self.assertEqual(result.summary.skipped, 1)
        self.assertEqual(result.summary.total_documents, 0)
        self.assertEqual(result.summary.message, "All files already enhanced within 12 hours")
        self.assertFalse(self.log_dir.exists())

    async def test_processes_documents_that_need_enhancement(self):
        team = self._team(_static_registry("a", "b"))
        documents = [
            make_document("guide.md"),
            make_document("old.md", needs_enhancement=False),
        ]

        result = await team.process_documents(documents)

        summary = result.summary
        self.assertTrue(result.success)
        self.assertEqual(summary.total_documents, 1)
        self.assertEqual(summary.successful, 1)
        self.assertEqual(summary.skipped, 1)
        self.assertEqual(summary.agent_collaborations, 2)
        self.assertEqual(result.enhancements[0].improvements, ["a ran", "b ran"])
        self.assertEqual(len(list(self.log_dir.glob("run-*.log"))), 1)

    async def test_status_reflects_initialization(self):
        team = self._team(_static_registry("a", "b"))
        self.assertFalse(team.status().initialized)

        team.initialize()
        status = team.status()

        self.assertTrue(status.initialized)
        self.assertEqual(status.agent_count, 2)
        self.assertEqual(status.capacity, "2/6 agents")
        self.assertEqual([agent.name for agent in status.agents], ["a", "b"])

    async def test_report_is_logged(self):
        team = self._team(_static_registry("a"))

        with self.assertLogs("ragprep.agents.team", level="INFO") as logs:
            await team.process_documents([make_document("guide.md")])

        report = "\n".join(logs.output)
        self.assertIn("MULTI-AGENT WORKFLOW RESULTS", report)
        self.assertIn("a: 1/1 files (100% success", report)


if __name__ == "__main__":
    unittest.main()
