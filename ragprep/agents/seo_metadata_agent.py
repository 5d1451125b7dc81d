"""SEO metadata agent - proposes titles, descriptions and search keywords."""

from __future__ import annotations

import json
import math
from collections import Counter
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ragprep.agents.base_agent import LLMBackedAgent
from ragprep.core.json_utils import coerce_str_list
from ragprep.core.markdown import (
    extract_code_blocks,
    extract_headings,
    extract_links,
    truncate_for_prompt,
    word_count,
)
from ragprep.models.enhancement import EnhancementOutcome

if TYPE_CHECKING:
    from ragprep.agents.base_agent import DocumentHandle
    from ragprep.core.markdown import Heading

MAX_TITLE_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 160
MAX_SEO_ARRAY_ITEMS = 8
DEFAULT_SEO_SCORE = 75
MAX_SEO_SCORE = 100
FALLBACK_SEO_SCORE = 70
WORDS_PER_MINUTE = 200

SEO_ARRAY_FIELDS = ("keywords", "searchKeywords", "semanticTerms", "tags", "audience")
_STOPWORDS = frozenset({"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"})


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _reading_time(words: int) -> int:
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


def infer_content_type(title: str, headings: list[Heading]) -> str:
    title = title.lower()
    heading_text = " ".join(h.text.lower() for h in headings)
    if "tutorial" in title or "step" in heading_text or "how to" in heading_text:
        return "tutorial"
    if "reference" in title or "api" in title or "parameters" in heading_text:
        return "reference"
    if "troubleshoot" in title or "error" in heading_text or "problem" in heading_text:
        return "troubleshooting"
    if "overview" in title or "introduction" in title:
        return "overview"
    return "guide"


class SEOMetadataAgent(LLMBackedAgent):
    """Generates search-oriented front matter for a document.

    The LLM proposal is validated and normalized; when the call fails or the
    response cannot be parsed, keyword frequencies drive a heuristic proposal.
    """

    name = "seo-metadata-generator-agent"
    role = "SEO Content Analysis Specialist"

    async def analyze(
        self, handle: DocumentHandle, content: str, current_metadata: dict[str, Any]
    ) -> EnhancementOutcome:
        self.log_info(f"Analyzing: {handle.source_path}")
        parsed = self.parse_document(content)
        title = self.resolve_title(parsed, current_metadata)
        headings = extract_headings(parsed.body)
        words = word_count(parsed.body)

        prompt = self._build_prompt(title, parsed.body, parsed.data, headings, words)
        raw = await self._generate_json(prompt)
        if raw is None:
            self.log_info(f"Using fallback SEO analysis for: {title}")
            metadata = self._fallback_metadata(title, parsed.body, headings, words)
        else:
            metadata = self._validate(raw, words)

        self.log_info(f"Enhanced SEO metadata for: {handle.source_path}")
        return EnhancementOutcome(
            original_metadata=parsed.data,
            proposed_metadata=metadata,
            improvements=self._identify_improvements(parsed.data, metadata),
        )

    def _build_prompt(
        self,
        title: str,
        body: str,
        current: dict[str, Any],
        headings: list[Heading],
        words: int,
    ) -> str:
        code_languages = sorted({block.language for block in extract_code_blocks(body)})
        links = extract_links(body)
        heading_lines = "\n".join(f"{'#' * h.level} {h.text}" for h in headings)
        extras = []
        if code_languages:
            extras.append(f"Code Languages: {', '.join(code_languages)}")
        if links:
            extras.append(f"External Links: {len(links)}")

        return f"""You are an expert SEO analyst specializing in technical documentation.
Analyze this document and generate SEO metadata that improves discoverability.

DOCUMENT TO ANALYZE:
Title: {title}
Word Count: {words}
Headings:
{heading_lines}
{chr(10).join(extras)}

CONTENT:
{truncate_for_prompt(body)}

CURRENT METADATA:
{json.dumps(current, indent=2, default=str)}

Return ONLY a JSON object with these fields:
{{
  "title": "SEO-optimized title (50-60 chars)",
  "description": "Meta description (150-160 chars)",
  "keywords": ["primary-keyword", "secondary-keyword"],
  "searchKeywords": ["user-query-keyword"],
  "semanticTerms": ["related-concept"],
  "focusKeyword": "primary-target-keyword",
  "contentType": "tutorial|reference|guide|overview|troubleshooting",
  "searchIntent": "informational|navigational|transactional|commercial",
  "readingLevel": "beginner|intermediate|advanced",
  "estimatedReadingTime": 5,
  "category": "primary-category",
  "tags": ["tag1", "tag2"],
  "audience": ["developers"],
  "seoScore": 85
}}"""

    def _validate(self, raw: dict[str, Any], words: int) -> dict[str, Any]:
        metadata = dict(raw)

        for key in ("title", "description"):
            if not isinstance(metadata.get(key), str):
                metadata.pop(key, None)
        if "title" in metadata:
            metadata["title"] = _truncate(metadata["title"].strip(), MAX_TITLE_LENGTH)
        if "description" in metadata:
            metadata["description"] = _truncate(
                metadata["description"].strip(), MAX_DESCRIPTION_LENGTH
            )

        for key in SEO_ARRAY_FIELDS:
            if key in metadata:
                items = coerce_str_list(metadata[key], lower=True)
                metadata[key] = [item.replace('"', "'") for item in items][:MAX_SEO_ARRAY_ITEMS]

        if not metadata.get("keywords"):
            metadata["keywords"] = ["documentation", "guide"]
        if not metadata.get("tags"):
            metadata["tags"] = ["documentation"]
        seo_score = metadata.get("seoScore")
        if not _is_number(seo_score) or seo_score > MAX_SEO_SCORE:
            metadata["seoScore"] = DEFAULT_SEO_SCORE
        if not _is_number(metadata.get("estimatedReadingTime")):
            metadata["estimatedReadingTime"] = _reading_time(words)
        return metadata

    def _fallback_metadata(
        self, title: str, body: str, headings: list[Heading], words: int
    ) -> dict[str, Any]:
        counts = Counter(
            word for word in body.lower().split() if len(word) > 3 and word not in _STOPWORDS
        )
        top_keywords = [word for word, _ in counts.most_common(5)]

        if words < 500:
            reading_level = "beginner"
        elif words < 1000:
            reading_level = "intermediate"
        else:
            reading_level = "advanced"

        return {
            "title": _truncate(title, MAX_TITLE_LENGTH),
            "description": _truncate(
                f"Learn about {title.lower()}. This guide covers key concepts "
                "and practical implementation.",
                MAX_DESCRIPTION_LENGTH,
            ),
            "keywords": top_keywords or ["documentation", "guide"],
            "searchKeywords": top_keywords[:3],
            "semanticTerms": [],
            "focusKeyword": top_keywords[0] if top_keywords else "documentation",
            "contentType": infer_content_type(title, headings),
            "searchIntent": "informational",
            "readingLevel": reading_level,
            "estimatedReadingTime": _reading_time(words),
            "lastUpdated": datetime.now(UTC).date().isoformat(),
            "category": "documentation",
            "tags": [*top_keywords[:3], "documentation"],
            "audience": ["developers"],
            "seoScore": FALLBACK_SEO_SCORE,
        }

    @staticmethod
    def _identify_improvements(original: dict[str, Any], proposed: dict[str, Any]) -> list[str]:
        checks = (
            ("description", "Added SEO-optimized description"),
            ("keywords", "Added target keywords"),
            ("focusKeyword", "Added focus keyword"),
            ("searchKeywords", "Added search keywords"),
            ("contentType", "Added content type classification"),
            ("searchIntent", "Added search intent analysis"),
        )
        improvements = [
            message for key, message in checks if not original.get(key) and proposed.get(key)
        ]
        if proposed.get("seoScore"):
            improvements.append(f"SEO score: {proposed['seoScore']}/100")
        return improvements
