"""Content research agent - grounds documents against current web sources."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, ClassVar

from ragprep.agents.base_agent import BaseAgent
from ragprep.core import frontmatter
from ragprep.core.json_utils import coerce_str_list, extract_json
from ragprep.core.markdown import extract_headings
from ragprep.domain.exceptions import MissingCredentialError, UpstreamServiceError
from ragprep.models.enhancement import EnhancementOutcome

if TYPE_CHECKING:
    from ragprep.adapters.llm import LLMClientProtocol
    from ragprep.adapters.search import SearchHit, TavilyClient
    from ragprep.agents.base_agent import DocumentHandle

MAX_QUERIES = 3
MAX_RESEARCH_ITEMS = 6
MAX_SOURCES = 10
BASE_VALIDATION_SCORE = 60
MAX_VALIDATION_SCORE = 95
POINTS_PER_SOURCE = 5

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_PRACTICE_RE = re.compile(r"best practice|should|recommend|avoid|always|never", re.IGNORECASE)
_TREND_RE = re.compile(r"trend|emerging|modern|adoption|increasingly|\b20\d\d\b", re.IGNORECASE)


def _matching_sentences(hits: list[SearchHit], pattern: re.Pattern[str]) -> list[str]:
    sentences: list[str] = []
    for hit in hits:
        for sentence in _SENTENCE_SPLIT_RE.split(hit.content):
            sentence = " ".join(sentence.split())
            if 20 <= len(sentence) <= 200 and pattern.search(sentence) and sentence not in sentences:
                sentences.append(sentence)
    return sentences[:MAX_RESEARCH_ITEMS]


def heuristic_validation_score(source_count: int) -> int:
    return min(MAX_VALIDATION_SCORE, BASE_VALIDATION_SCORE + POINTS_PER_SOURCE * source_count)


class ContentResearchAgent(BaseAgent):
    """Runs web searches for a document's subject and summarizes the findings."""

    name = "content-research-agent"
    role = "Technical Research Specialist"
    credential_name: ClassVar[str] = "TAVILY_API_KEY"

    def __init__(
        self,
        search_client: TavilyClient | None,
        llm_client: LLMClientProtocol | None = None,
        correlation_id: str | None = None,
    ):
        super().__init__(correlation_id=correlation_id)
        self._search = search_client
        self._llm = llm_client

    async def analyze(
        self, handle: DocumentHandle, content: str, current_metadata: dict[str, Any]
    ) -> EnhancementOutcome:
        if self._search is None:
            self.log_error(f"{self.credential_name} not found in environment variables")
            raise MissingCredentialError(self.credential_name, agent_name=self.name)

        self.log_info(f"Researching: {handle.source_path}")
        parsed = frontmatter.parse(content)
        title = self.resolve_title(parsed, current_metadata)
        queries = self.build_queries(title, parsed.body)

        hits = await self._run_searches(self._search, queries)
        sources = list(dict.fromkeys(hit.url for hit in hits))[:MAX_SOURCES]

        findings = await self._synthesize_with_llm(title, hits) if hits else None
        if findings is None:
            findings = self._synthesize_heuristically(hits)

        metadata: dict[str, Any] = {**findings, "researchSources": sources}
        score = metadata.get("validationScore")
        if not isinstance(score, int | float) or isinstance(score, bool) or score <= 0:
            metadata["validationScore"] = heuristic_validation_score(len(sources))

        return EnhancementOutcome(
            original_metadata=parsed.data,
            proposed_metadata=metadata,
            improvements=self._improvements(metadata, len(queries)),
        )

    @staticmethod
    def build_queries(title: str, body: str) -> list[str]:
        """Title first, then the leading headings that differ from it."""
        queries = [title]
        for heading in extract_headings(body):
            if len(queries) >= MAX_QUERIES:
                break
            query = f"{title} {heading.text}".strip()
            if heading.text and heading.text.lower() != title.lower() and query not in queries:
                queries.append(query)
        return queries

    async def _run_searches(self, search: TavilyClient, queries: list[str]) -> list[SearchHit]:
        hits: list[SearchHit] = []
        seen: set[str] = set()
        for query in queries:
            try:
                results = await search.search(query)
            except UpstreamServiceError as exc:
                self.log_warning(f"Search failed for '{query}': {exc.message}", query=query)
                continue
            for hit in results:
                if hit.url not in seen:
                    seen.add(hit.url)
                    hits.append(hit)
        return hits

    async def _synthesize_with_llm(self, title: str, hits: list[SearchHit]) -> dict[str, Any] | None:
        if self._llm is None:
            return None

        sources = [
            {"title": hit.title, "url": hit.url, "content": hit.content[:500]}
            for hit in hits[:MAX_SOURCES]
        ]
        prompt = f"""You are a technical research specialist. Summarize what these web
sources say about "{title}" for documentation readers.

SOURCES:
{json.dumps(sources, indent=2)}

Return ONLY a JSON object:
{{
  "relatedTopics": ["topic"],
  "bestPractices": ["short recommendation"],
  "industryTrends": ["short trend statement"],
  "validationScore": 85
}}"""

        result = await self._llm.generate(prompt, json_mode=True)
        raw = extract_json(result.response_text or "") if result.ok else None
        if raw is None:
            self.log_warning("Research synthesis failed, using heuristic summary")
            return None

        findings: dict[str, Any] = {
            "relatedTopics": coerce_str_list(
                raw.get("relatedTopics"), limit=MAX_RESEARCH_ITEMS, lower=True
            ),
            "bestPractices": coerce_str_list(raw.get("bestPractices"), limit=MAX_RESEARCH_ITEMS),
            "industryTrends": coerce_str_list(raw.get("industryTrends"), limit=MAX_RESEARCH_ITEMS),
        }
        score = raw.get("validationScore")
        if isinstance(score, int | float) and not isinstance(score, bool):
            findings["validationScore"] = max(0, min(100, int(score)))
        return findings

    @staticmethod
    def _synthesize_heuristically(hits: list[SearchHit]) -> dict[str, Any]:
        topics = coerce_str_list([hit.title for hit in hits if hit.title], lower=True)
        return {
            "relatedTopics": topics[:MAX_RESEARCH_ITEMS],
            "bestPractices": _matching_sentences(hits, _PRACTICE_RE),
            "industryTrends": _matching_sentences(hits, _TREND_RE),
        }

    @staticmethod
    def _improvements(metadata: dict[str, Any], query_count: int) -> list[str]:
        sources = metadata.get("researchSources") or []
        if not sources:
            return [f"No research sources found ({query_count} queries)"]
        improvements = [f"Validated against {len(sources)} web sources"]
        if metadata.get("relatedTopics"):
            improvements.append("Added related topics")
        if metadata.get("bestPractices"):
            improvements.append("Added best practices")
        if metadata.get("industryTrends"):
            improvements.append("Added industry trends")
        improvements.append(f"Validation score: {metadata['validationScore']}/100")
        return improvements
