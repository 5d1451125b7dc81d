"""Tests for batch-level processing, summaries and publishing."""

from unittest.mock import AsyncMock

import pytest

from ragprep.adapters.llm import LLMClientProtocol
from ragprep.agents.batch import BatchCoordinator, summarize_for_log
from ragprep.agents.seo_metadata_agent import SEOMetadataAgent
from ragprep.agents.statistics import AgentStatistics
from ragprep.domain.exceptions import ConfigurationError, PublishFailure
from ragprep.models.enhancement import PublishOutcome
from ragprep.observability.run_logger import RunLogger, RunLoggerState
from tests.fakes import InMemoryReader, StaticAgent, llm_ok, make_document

GUIDE = "---\ntitle: Guide\n---\n# Guide\n\nBody.\n"
FAQ = "# FAQ\n\nQuestions.\n"


def _coordinator(log_dir, contents, **kwargs):
    run_logger = RunLogger(log_dir)
    coordinator = BatchCoordinator(
        run_logger, reader=InMemoryReader(contents), correlation_id="batch-test", **kwargs
    )
    return coordinator, run_logger


@pytest.mark.asyncio
async def test_empty_batch_raises_and_leaves_statistics_untouched(log_dir):
    statistics = AgentStatistics()
    statistics.reset(["previous"])
    statistics.record("previous", success=True, processing_time_ms=10)
    coordinator, run_logger = _coordinator(log_dir, {}, statistics=statistics)

    with pytest.raises(ConfigurationError):
        await coordinator.process_batch([], [StaticAgent("a")])

    assert list(statistics.snapshot()) == ["previous"]
    assert statistics.get("previous").successful == 1
    assert len(run_logger.entries) == 1
    assert "run started" in run_logger.entries[0].message
    assert "RUN COMPLETED" not in run_logger.path.read_text(encoding="utf-8")
    assert run_logger.state is RunLoggerState.FINALIZED


@pytest.mark.asyncio
async def test_batch_without_agents_raises(log_dir):
    coordinator, _ = _coordinator(log_dir, {"guide.md": GUIDE})

    with pytest.raises(ConfigurationError) as excinfo:
        await coordinator.process_batch([make_document("guide.md")], [])

    assert "agents" in excinfo.value.message


@pytest.mark.asyncio
async def test_summary_counts_and_averages(log_dir):
    documents = [make_document("guide.md"), make_document("faq.md")]
    agents = [
        StaticAgent("a", metadata={"seoScore": 80, "keywords": ["x"]}, improvements=["i1"]),
        StaticAgent("b", metadata={"seoScore": 61, "topics": ["y"]}, improvements=["i2"]),
    ]
    coordinator, run_logger = _coordinator(log_dir, {"guide.md": GUIDE, "faq.md": FAQ})

    result = await coordinator.process_batch(documents, agents)

    summary = result.summary
    assert result.success is True
    assert summary.total_documents == 2
    assert summary.successful + summary.failed == summary.total_documents
    assert summary.average_score == 71
    assert summary.total_improvements == 4
    assert summary.agent_count == 2
    assert summary.agent_collaborations == 4
    assert [(item.field, item.count) for item in summary.top_added_fields] == [
        ("seoScore", 2),
        ("keywords", 2),
        ("topics", 2),
    ]
    assert summary.agent_statistics["a"].successful == 2
    assert summary.change_set.status == "skipped"
    assert all(len(item.agent_results) == 2 for item in result.enhancements)
    assert run_logger.state is RunLoggerState.FINALIZED
    assert result.run_log_path == str(run_logger.path)


@pytest.mark.asyncio
async def test_unreadable_document_becomes_batch_error(log_dir):
    documents = [make_document("guide.md"), make_document("gone.md", title="Gone")]
    coordinator, _ = _coordinator(log_dir, {"guide.md": GUIDE})

    result = await coordinator.process_batch(documents, [StaticAgent("a")])

    assert result.success is True
    assert result.summary.successful == 1
    assert result.summary.failed == 1
    assert result.errors[0].document == "gone.md"
    assert result.errors[0].title == "Gone"


@pytest.mark.asyncio
async def test_failing_agent_still_counts_document_as_successful(log_dir):
    agents = [
        StaticAgent("a", metadata={"seoScore": 80}),
        StaticAgent("b", error=RuntimeError("boom")),
        StaticAgent("c", metadata={"seoScore": 60}),
    ]
    coordinator, _ = _coordinator(log_dir, {"guide.md": GUIDE})

    result = await coordinator.process_batch([make_document("guide.md")], agents)

    assert result.summary.successful == 1
    assert result.summary.failed == 0
    assert result.enhancements[0].consolidated_score == 70
    stats = result.summary.agent_statistics
    assert (stats["b"].successful, stats["b"].failed) == (0, 1)
    assert stats["b"].success_rate == 0
    assert stats["a"].success_rate == 100


@pytest.mark.asyncio
async def test_unexpected_error_returns_structured_failure(log_dir):
    class ExplodingReader:
        async def read(self, document):
            raise RuntimeError("disk on fire")

    run_logger = RunLogger(log_dir)
    coordinator = BatchCoordinator(run_logger, reader=ExplodingReader())

    result = await coordinator.process_batch([make_document("guide.md")], [StaticAgent("a")])

    assert result.success is False
    assert "disk on fire" in result.error
    assert result.summary is None
    text = run_logger.path.read_text(encoding="utf-8")
    assert "FATAL ERROR: disk on fire" in text
    assert "RUN COMPLETED" in text


@pytest.mark.asyncio
async def test_publisher_receives_changes_for_successful_documents(log_dir):
    publisher = AsyncMock()
    publisher.publish.return_value = PublishOutcome(
        success=True, identifier=7, location_url="https://example.test/pr/7", branch_name="b"
    )
    modifying = StaticAgent(
        "chunking", transform=lambda text: text + "\nmore\n", may_modify_content=True
    )
    coordinator, _ = _coordinator(log_dir, {"guide.md": GUIDE}, publisher=publisher)

    result = await coordinator.process_batch([make_document("guide.md")], [modifying])

    changes, summary = publisher.publish.await_args.args
    assert changes[0].relative_path == "guide.md"
    assert changes[0].enhanced_content == GUIDE + "\nmore\n"
    assert changes[0].original_content == GUIDE
    assert summary.successful == 1
    assert result.summary.change_set.identifier == 7


@pytest.mark.asyncio
async def test_publish_failure_is_reported_not_raised(log_dir):
    publisher = AsyncMock()
    publisher.publish.side_effect = PublishFailure("token rejected")
    coordinator, _ = _coordinator(log_dir, {"guide.md": GUIDE}, publisher=publisher)

    result = await coordinator.process_batch([make_document("guide.md")], [StaticAgent("a")])

    assert result.success is True
    assert result.summary.change_set.status == "failed"
    assert result.summary.change_set.error == "token rejected"


@pytest.mark.asyncio
async def test_batch_is_idempotent_for_same_input(log_dir):
    agents = [StaticAgent("a", metadata={"seoScore": 90, "keywords": ["k"]})]
    documents = [make_document("guide.md")]

    first, _ = _coordinator(log_dir / "one", {"guide.md": GUIDE})
    second, _ = _coordinator(log_dir / "two", {"guide.md": GUIDE})
    result_one = await first.process_batch(documents, agents)
    result_two = await second.process_batch(documents, agents)

    assert result_one.enhancements[0].final_content == result_two.enhancements[0].final_content
    assert result_one.summary.average_score == result_two.summary.average_score
    assert result_one.enhancements[0].added_fields == result_two.enhancements[0].added_fields


def test_summarize_for_log_without_summary():
    from ragprep.models.enhancement import BatchResult

    compact = summarize_for_log(BatchResult(success=False, error="bad"))

    assert compact == {"success": False, "error": "bad"}


@pytest.mark.asyncio
async def test_non_finite_scores_do_not_abort_the_batch(log_dir):
    llm = AsyncMock(spec=LLMClientProtocol)
    llm.generate.return_value = llm_ok('{"title": "Guide", "seoScore": 1e999}')
    agents = [
        SEOMetadataAgent(llm, correlation_id="batch-test"),
        StaticAgent("raw", metadata={"ragScore": float("inf"), "validationScore": 80}),
    ]
    documents = [make_document("guide.md"), make_document("faq.md")]
    coordinator, _ = _coordinator(log_dir, {"guide.md": GUIDE, "faq.md": FAQ})

    result = await coordinator.process_batch(documents, agents)

    assert result.success is True
    assert result.summary.successful == 2
    assert [item.consolidated_score for item in result.enhancements] == [78, 78]
    assert result.summary.average_score == 78
