"""Tests for the sequential document orchestrator."""

import unittest
from pathlib import Path

from ragprep.agents.orchestrator import (
    DocumentOrchestrator,
    DocumentRun,
    DocumentState,
    FileDocumentReader,
)
from ragprep.agents.safe_runner import SafeAgentRunner
from ragprep.agents.statistics import AgentStatistics
from ragprep.domain.exceptions import DocumentReadFailure, InvalidStateTransitionError
from tests.fakes import InMemoryReader, StaticAgent, make_document

CONTENT = "---\ntitle: Guide\n---\n# Guide\n\nSome body text here.\n"


class TestDocumentRun(unittest.TestCase):
    def test_happy_path_transitions(self):
        run = DocumentRun("a.md")
        run.transition(DocumentState.RUNNING)
        run.transition(DocumentState.COMPLETED)
        self.assertEqual(run.state, DocumentState.COMPLETED)

    def test_illegal_transition_raises(self):
        run = DocumentRun("a.md")
        with self.assertRaises(InvalidStateTransitionError):
            run.transition(DocumentState.COMPLETED)

    def test_terminal_states_are_final(self):
        run = DocumentRun("a.md")
        run.transition(DocumentState.FAILED)
        with self.assertRaises(InvalidStateTransitionError):
            run.transition(DocumentState.RUNNING)


class TestDocumentOrchestrator(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.statistics = AgentStatistics()
        self.reader = InMemoryReader({"guide.md": CONTENT})
        self.orchestrator = DocumentOrchestrator(
            SafeAgentRunner(), self.statistics, reader=self.reader, correlation_id="cid"
        )
        self.document = make_document("guide.md", title="Guide", frontmatter={"title": "Guide"})

    async def test_content_threads_only_through_modifying_agent(self):
        agent_a = StaticAgent("a", metadata={"seoScore": 80})
        agent_b = StaticAgent(
            "b",
            metadata={"chunkingScore": 90},
            transform=lambda text: text + "\n## Extra\n",
            may_modify_content=True,
        )
        agent_c = StaticAgent("c", metadata={"validationScore": 70})
        self.statistics.reset(["a", "b", "c"])

        result = await self.orchestrator.process_document(
            self.document, [agent_a, agent_b, agent_c]
        )

        changed = CONTENT + "\n## Extra\n"
        self.assertEqual(agent_a.seen_content, [CONTENT])
        self.assertEqual(agent_b.seen_content, [CONTENT])
        self.assertEqual(agent_c.seen_content, [changed])
        self.assertEqual([s.stage for s in result.content_snapshots], ["original", "b"])
        self.assertEqual(result.content_snapshots[0].content, CONTENT)
        self.assertEqual(result.final_content, changed)
        self.assertEqual(
            [r.content_modified for r in result.agent_results], [False, True, False]
        )
        self.assertEqual([r.sequence_position for r in result.agent_results], [1, 2, 3])
        self.assertEqual(result.consolidated_score, 80)

    async def test_one_result_per_agent_and_failure_does_not_stop_pipeline(self):
        agent_a = StaticAgent("a", metadata={"seoScore": 80}, improvements=["one"])
        agent_b = StaticAgent("b", error=RuntimeError("boom"))
        agent_c = StaticAgent("c", metadata={"seoScore": 60}, improvements=["two"])
        self.statistics.reset(["a", "b", "c"])

        result = await self.orchestrator.process_document(
            self.document, [agent_a, agent_b, agent_c]
        )

        self.assertEqual(len(result.agent_results), 3)
        failed = result.agent_results[1]
        self.assertFalse(failed.succeeded)
        self.assertIsNone(failed.outcome)
        self.assertIn("boom", failed.error)
        self.assertEqual(agent_c.seen_content, [CONTENT])
        self.assertEqual(result.improvements, ["one", "two"])
        self.assertEqual(result.consolidated_score, 70)
        self.assertEqual(self.statistics.get("b").failed, 1)
        self.assertEqual(self.statistics.get("a").successful, 1)
        self.assertEqual(
            result.total_processing_time_ms,
            sum(r.processing_time_ms for r in result.agent_results),
        )

    async def test_metadata_accumulates_between_agents(self):
        agent_a = StaticAgent("a", metadata={"keywords": ["rag"], "seoScore": 80})
        agent_b = StaticAgent("b", metadata={"topics": ["docs"]})

        await self.orchestrator.process_document(self.document, [agent_a, agent_b])

        self.assertEqual(agent_a.seen_metadata[0], {"title": "Guide"})
        self.assertEqual(
            agent_b.seen_metadata[0],
            {"title": "Guide", "keywords": ["rag"], "seoScore": 80},
        )

    async def test_default_score_when_no_score_fields(self):
        agent = StaticAgent("a", metadata={"topics": ["docs"]})

        result = await self.orchestrator.process_document(self.document, [agent])

        self.assertEqual(result.consolidated_score, 75)

    async def test_default_score_when_all_agents_fail(self):
        agent = StaticAgent("a", error=RuntimeError("boom"))

        result = await self.orchestrator.process_document(self.document, [agent])

        self.assertEqual(result.consolidated_score, 75)
        self.assertEqual(result.added_fields, [])
        self.assertEqual(result.final_content, CONTENT)

    async def test_added_fields_exclude_provenance_markers(self):
        agent_a = StaticAgent("a", metadata={"keywords": ["x"], "enhanced_by": "me"})
        agent_b = StaticAgent("b", metadata={"topics": ["y"], "keywords": ["z"]})

        result = await self.orchestrator.process_document(self.document, [agent_a, agent_b])

        self.assertEqual(result.added_fields, ["keywords", "topics"])

    async def test_unreadable_document_raises_read_failure(self):
        missing = make_document("missing.md")
        agent = StaticAgent("a")

        with self.assertRaises(DocumentReadFailure) as ctx:
            await self.orchestrator.process_document(missing, [agent])

        self.assertEqual(ctx.exception.document, "missing.md")
        self.assertEqual(agent.seen_content, [])

    async def test_reads_document_once(self):
        agents = [StaticAgent("a"), StaticAgent("b")]

        await self.orchestrator.process_document(self.document, agents)

        self.assertEqual(self.reader.reads, ["guide.md"])


class TestFileDocumentReader(unittest.IsolatedAsyncioTestCase):
    async def test_reads_file_and_never_modifies_it(self):
        import tempfile

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "guide.md"
            path.write_text(CONTENT, encoding="utf-8")
            document = make_document("guide.md").model_copy(
                update={"absolute_path": str(path)}
            )
            orchestrator = DocumentOrchestrator(SafeAgentRunner(), AgentStatistics())
            agent = StaticAgent(
                "b", transform=lambda text: "rewritten", may_modify_content=True
            )

            result = await orchestrator.process_document(document, [agent])

            self.assertEqual(result.final_content, "rewritten")
            self.assertEqual(path.read_text(encoding="utf-8"), CONTENT)

    async def test_missing_file_raises_read_failure(self):
        reader = FileDocumentReader()
        document = make_document("nope.md").model_copy(
            update={"absolute_path": "/nonexistent/ragprep/nope.md"}
        )

        with self.assertRaises(DocumentReadFailure):
            await reader.read(document)


if __name__ == "__main__":
    unittest.main()
