"""Tests for the SEO metadata and topic taxonomy agents."""

import json
import unittest
from unittest.mock import AsyncMock

from ragprep.adapters.llm import LLMClientProtocol
from ragprep.agents.safe_runner import DetachedHandle
from ragprep.agents.seo_metadata_agent import SEOMetadataAgent, infer_content_type
from ragprep.agents.topic_taxonomy_agent import TopicTaxonomyAgent
from ragprep.core.markdown import Heading
from ragprep.domain.exceptions import MissingCredentialError
from tests.fakes import llm_error, llm_ok

DOCUMENT = """---
title: Token Setup
---
# Token Setup

Tokens authenticate requests. Tokens expire after rotation and tokens
must be stored safely. Rotation happens weekly.

## Step 1

Create the token.
"""


def _llm(result):
    llm = AsyncMock(spec=LLMClientProtocol)
    llm.generate.return_value = result
    return llm


class TestSEOMetadataAgent(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.handle = DetachedHandle("/docs/token-setup.md", DOCUMENT)

    async def test_llm_proposal_is_validated(self):
        raw = {
            "title": "T" * 80,
            "description": "D" * 200,
            "keywords": ["Auth", "TOKENS", "auth"],
            "tags": [],
            "seoScore": "high",
        }
        llm = _llm(llm_ok(json.dumps(raw)))
        agent = SEOMetadataAgent(llm, correlation_id="cid")

        outcome = await agent.analyze(self.handle, DOCUMENT, {"title": "Token Setup"})

        metadata = outcome.proposed_metadata
        self.assertEqual(len(metadata["title"]), 60)
        self.assertTrue(metadata["title"].endswith("..."))
        self.assertEqual(len(metadata["description"]), 160)
        self.assertEqual(metadata["keywords"], ["auth", "tokens"])
        self.assertEqual(metadata["tags"], ["documentation"])
        self.assertEqual(metadata["seoScore"], 75)
        self.assertEqual(metadata["estimatedReadingTime"], 1)
        self.assertIsNone(outcome.content)
        self.assertEqual(outcome.original_metadata, {"title": "Token Setup"})
        self.assertIn("Added SEO-optimized description", outcome.improvements)
        self.assertEqual(outcome.improvements[-1], "SEO score: 75/100")
        llm.generate.assert_awaited_once()
        self.assertTrue(llm.generate.await_args.kwargs["json_mode"])

    async def test_out_of_range_seo_score_is_reset(self):
        for raw_score in ('1e999', 'Infinity', '250'):
            with self.subTest(raw_score=raw_score):
                llm = _llm(llm_ok('{"title": "Guide", "seoScore": ' + raw_score + "}"))
                agent = SEOMetadataAgent(llm, correlation_id="cid")

                outcome = await agent.analyze(self.handle, DOCUMENT, {})

                self.assertEqual(outcome.proposed_metadata["seoScore"], 75)

    async def test_prompt_contains_title_and_headings(self):
        llm = _llm(llm_ok("{}"))
        agent = SEOMetadataAgent(llm)

        await agent.analyze(self.handle, DOCUMENT, {})

        prompt = llm.generate.await_args.args[0]
        self.assertIn("Title: Token Setup", prompt)
        self.assertIn("## Step 1", prompt)

    async def test_fallback_on_llm_error(self):
        agent = SEOMetadataAgent(_llm(llm_error()))

        outcome = await agent.analyze(self.handle, DOCUMENT, {})

        metadata = outcome.proposed_metadata
        self.assertEqual(metadata["seoScore"], 70)
        self.assertEqual(metadata["focusKeyword"], "tokens")
        self.assertEqual(metadata["searchIntent"], "informational")
        self.assertEqual(metadata["readingLevel"], "beginner")
        self.assertEqual(metadata["contentType"], "tutorial")
        self.assertIn("documentation", metadata["tags"])
        self.assertIn("SEO score: 70/100", outcome.improvements)

    async def test_fallback_on_malformed_json(self):
        agent = SEOMetadataAgent(_llm(llm_ok("no json here")))

        outcome = await agent.analyze(self.handle, DOCUMENT, {})

        self.assertEqual(outcome.proposed_metadata["seoScore"], 70)

    async def test_existing_fields_are_not_reported_as_improvements(self):
        content = "---\ntitle: Guide\ndescription: Already here\n---\n# Guide\n\nText.\n"
        agent = SEOMetadataAgent(_llm(llm_ok(json.dumps({"description": "New one"}))))

        outcome = await agent.analyze(self.handle, content, {})

        self.assertNotIn("Added SEO-optimized description", outcome.improvements)

    async def test_missing_llm_raises_missing_credential(self):
        agent = SEOMetadataAgent(None)

        with self.assertRaises(MissingCredentialError) as ctx:
            await agent.analyze(self.handle, DOCUMENT, {})

        self.assertEqual(ctx.exception.credential, "GOOGLE_API_KEY")
        self.assertEqual(ctx.exception.agent_name, SEOMetadataAgent.name)

    def test_infer_content_type(self):
        self.assertEqual(infer_content_type("API Reference", []), "reference")
        self.assertEqual(
            infer_content_type("Fixes", [Heading(level=2, text="Common error", line=1)]),
            "troubleshooting",
        )
        self.assertEqual(infer_content_type("Introduction", []), "overview")
        self.assertEqual(infer_content_type("Notes", []), "guide")


class TestTopicTaxonomyAgent(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.handle = DetachedHandle("/docs/token-setup.md", DOCUMENT)

    async def test_llm_taxonomy_is_normalized(self):
        raw = {
            "topics": ["Auth", "auth", "Tokens", "a", "b", "c", "d", "e"],
            "difficulty": "impossible",
            "complexity": "high",
            "contentType": "novel",
            "primaryTopic": " Authentication ",
            "taxonomyScore": 88,
        }
        agent = TopicTaxonomyAgent(_llm(llm_ok(json.dumps(raw))))

        outcome = await agent.analyze(self.handle, DOCUMENT, {})

        metadata = outcome.proposed_metadata
        self.assertEqual(metadata["topics"], ["auth", "tokens", "a", "b", "c", "d"])
        self.assertEqual(metadata["categories"], ["general"])
        self.assertEqual(metadata["audience"], ["developers"])
        self.assertEqual(metadata["difficulty"], "intermediate")
        self.assertEqual(metadata["complexity"], "high")
        self.assertEqual(metadata["contentType"], "guide")
        self.assertEqual(metadata["primaryTopic"], "authentication")
        self.assertEqual(outcome.improvements[-1], "Taxonomy score: 88/100")

    async def test_missing_score_defaults(self):
        agent = TopicTaxonomyAgent(_llm(llm_ok('{"topics": ["x"]}')))

        outcome = await agent.analyze(self.handle, DOCUMENT, {})

        self.assertEqual(outcome.proposed_metadata["taxonomyScore"], 75)

    async def test_fallback_detects_domain(self):
        agent = TopicTaxonomyAgent(_llm(llm_error()))
        content = "# Server Configuration\n\nThe setup of the server is simple.\n"

        outcome = await agent.analyze(self.handle, content, {})

        metadata = outcome.proposed_metadata
        self.assertEqual(metadata["primaryTopic"], "configuration")
        self.assertEqual(metadata["domainArea"], "infrastructure")
        self.assertEqual(metadata["difficulty"], "beginner")
        self.assertEqual(metadata["complexity"], "low")
        self.assertIn("system-administrators", metadata["audience"])
        self.assertEqual(metadata["taxonomyScore"], 70)

    async def test_missing_llm_raises_missing_credential(self):
        with self.assertRaises(MissingCredentialError):
            await TopicTaxonomyAgent(None).analyze(self.handle, DOCUMENT, {})


if __name__ == "__main__":
    unittest.main()
