"""Topic taxonomy agent - classifies documents by topic, difficulty and audience."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from ragprep.agents.base_agent import LLMBackedAgent
from ragprep.core.json_utils import coerce_str_list
from ragprep.core.markdown import (
    extract_code_blocks,
    extract_headings,
    extract_technical_terms,
    summarize_procedure,
    truncate_for_prompt,
    word_count,
)
from ragprep.models.enhancement import EnhancementOutcome

if TYPE_CHECKING:
    from ragprep.agents.base_agent import DocumentHandle
    from ragprep.core.markdown import Heading

MAX_TAXONOMY_ARRAY_ITEMS = 6
DEFAULT_TAXONOMY_SCORE = 75
FALLBACK_TAXONOMY_SCORE = 70

TAXONOMY_ARRAY_FIELDS = (
    "topics",
    "categories",
    "subCategories",
    "audience",
    "targetRoles",
    "prerequisites",
    "learningPath",
    "industryTags",
    "useCases",
    "relatedConcepts",
)
TAXONOMY_STRING_FIELDS = ("primaryTopic", "domainArea", "conceptLevel", "technicalDepth")

VALID_DIFFICULTIES = ("beginner", "intermediate", "advanced", "expert")
VALID_COMPLEXITIES = ("low", "medium", "high", "very-high")
VALID_CONTENT_TYPES = ("tutorial", "reference", "guide", "overview", "troubleshooting", "api-docs")


def _clean_item(value: str) -> str:
    return value.strip().lower().replace('"', "'")


class TopicTaxonomyAgent(LLMBackedAgent):
    """Builds a topic taxonomy for retrieval-oriented organization."""

    name = "topic-taxonomy-agent"
    role = "Information Architecture Specialist"

    async def analyze(
        self, handle: DocumentHandle, content: str, current_metadata: dict[str, Any]
    ) -> EnhancementOutcome:
        self.log_info(f"Analyzing taxonomy: {handle.source_path}")
        parsed = self.parse_document(content)
        title = self.resolve_title(parsed, current_metadata)
        headings = extract_headings(parsed.body)
        terms = extract_technical_terms(parsed.body)
        words = word_count(parsed.body)

        raw = await self._generate_json(
            self._build_prompt(title, parsed.body, parsed.data, headings, terms, words)
        )
        if raw is None:
            self.log_info(f"Using fallback taxonomy analysis for: {title}")
            metadata = self._fallback_metadata(title, parsed.body, headings, terms, words)
        else:
            metadata = self._validate(raw)

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
        terms: list[str],
        words: int,
    ) -> str:
        languages = sorted({block.language for block in extract_code_blocks(body)})
        procedure = summarize_procedure(body)
        context_lines = [
            f"Title: {title}",
            f"Word Count: {words}",
            "Headings:",
            *(f"{'#' * h.level} {h.text}" for h in headings),
        ]
        if languages:
            context_lines.append(f"Programming Languages: {', '.join(languages)}")
        if terms:
            context_lines.append(f"Technical Terms: {', '.join(terms)}")
        if procedure.has_steps:
            context_lines.append(f"Contains Procedures: {procedure.step_count} steps")

        return f"""You are an expert information architect and content taxonomist.
Create a topic taxonomy for this technical document that helps retrieval.

DOCUMENT TO ANALYZE:
{chr(10).join(context_lines)}

CONTENT:
{truncate_for_prompt(body)}

CURRENT METADATA:
{json.dumps(current, indent=2, default=str)}

Return ONLY a JSON object:
{{
  "primaryTopic": "main-subject-area",
  "topics": ["primary-topic", "secondary-topic"],
  "categories": ["content-type", "domain-area"],
  "subCategories": ["specific-area"],
  "difficulty": "beginner|intermediate|advanced|expert",
  "complexity": "low|medium|high|very-high",
  "audience": ["developers"],
  "targetRoles": ["backend-developer"],
  "prerequisites": ["basic-programming"],
  "learningPath": ["foundational-concepts"],
  "contentType": "tutorial|reference|guide|overview|troubleshooting|api-docs",
  "domainArea": "security|development|infrastructure|integration|configuration",
  "conceptLevel": "introduction|implementation|optimization|troubleshooting",
  "technicalDepth": "surface|detailed|comprehensive|expert",
  "industryTags": ["enterprise"],
  "useCases": ["api-integration"],
  "relatedConcepts": ["oauth"],
  "taxonomyScore": 85
}}"""

    def _validate(self, raw: dict[str, Any]) -> dict[str, Any]:
        metadata = dict(raw)

        for key in TAXONOMY_ARRAY_FIELDS:
            if key in metadata:
                items = [_clean_item(item) for item in coerce_str_list(metadata[key])]
                metadata[key] = list(dict.fromkeys(items))[:MAX_TAXONOMY_ARRAY_ITEMS]

        metadata.setdefault("topics", [])
        metadata.setdefault("categories", [])
        metadata.setdefault("audience", [])
        if not metadata["topics"]:
            metadata["topics"] = ["documentation"]
        if not metadata["categories"]:
            metadata["categories"] = ["general"]
        if not metadata["audience"]:
            metadata["audience"] = ["developers"]

        if metadata.get("difficulty") not in VALID_DIFFICULTIES:
            metadata["difficulty"] = "intermediate"
        if metadata.get("complexity") not in VALID_COMPLEXITIES:
            metadata["complexity"] = "medium"
        if metadata.get("contentType") not in VALID_CONTENT_TYPES:
            metadata["contentType"] = "guide"

        score = metadata.get("taxonomyScore")
        if not isinstance(score, int | float) or isinstance(score, bool) or score <= 0:
            metadata["taxonomyScore"] = DEFAULT_TAXONOMY_SCORE

        for key in TAXONOMY_STRING_FIELDS:
            if isinstance(metadata.get(key), str):
                metadata[key] = _clean_item(metadata[key])
        return metadata

    def _fallback_metadata(
        self,
        title: str,
        body: str,
        headings: list[Heading],
        terms: list[str],
        words: int,
    ) -> dict[str, Any]:
        title_lower = title.lower()
        content = body.lower()
        heading_text = " ".join(h.text.lower() for h in headings)

        primary_topic, domain_area, content_type = "documentation", "general", "guide"
        if "auth" in title_lower or "authentication" in content or "login" in content:
            primary_topic, domain_area = "authentication", "security"
        elif "config" in title_lower or "configuration" in content or "setup" in content:
            primary_topic, domain_area = "configuration", "infrastructure"
        elif "api" in title_lower or "endpoint" in content or "rest" in content:
            primary_topic, domain_area = "api", "development"
        elif "tutorial" in title_lower or "guide" in title_lower or "step" in heading_text:
            primary_topic, domain_area, content_type = "tutorial", "development", "tutorial"

        if words < 200 or len(terms) < 3:
            difficulty = "beginner"
        elif words > 800 or len(terms) > 8:
            difficulty = "advanced"
        else:
            difficulty = "intermediate"
        complexity = {"beginner": "low", "advanced": "high"}.get(difficulty, "medium")

        audience = ["developers"]
        if any(marker in content for marker in ("admin", "system", "server")):
            audience.append("system-administrators")
        if difficulty == "beginner":
            audience.append("beginners")

        return {
            "primaryTopic": primary_topic,
            "topics": list(dict.fromkeys([primary_topic, domain_area])),
            "categories": list(dict.fromkeys([content_type, domain_area])),
            "subCategories": [],
            "difficulty": difficulty,
            "complexity": complexity,
            "audience": audience,
            "targetRoles": (
                ["devops-engineer"] if "system-administrators" in audience else ["developer"]
            ),
            "prerequisites": [] if difficulty == "beginner" else ["basic-programming"],
            "learningPath": [primary_topic],
            "contentType": content_type,
            "domainArea": domain_area,
            "conceptLevel": "implementation",
            "technicalDepth": "detailed",
            "industryTags": [],
            "useCases": [f"{primary_topic}-implementation"],
            "relatedConcepts": terms[:3],
            "taxonomyScore": FALLBACK_TAXONOMY_SCORE,
        }

    @staticmethod
    def _identify_improvements(original: dict[str, Any], proposed: dict[str, Any]) -> list[str]:
        checks = (
            ("topics", "Added topic categorization"),
            ("difficulty", "Added difficulty level"),
            ("audience", "Added target audience"),
            ("prerequisites", "Added prerequisites"),
            ("contentType", "Added content type"),
            ("domainArea", "Added domain classification"),
        )
        improvements = [
            message for key, message in checks if not original.get(key) and proposed.get(key)
        ]
        if proposed.get("taxonomyScore"):
            improvements.append(f"Taxonomy score: {proposed['taxonomyScore']}/100")
        return improvements
