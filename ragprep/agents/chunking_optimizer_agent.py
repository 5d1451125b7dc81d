"""Chunking optimizer agent - restructures documents for retrieval-sized chunks.

Unlike the metadata agents, this agent rewrites the document: it inserts
headings, splits oversized sections, adds bridging sentences and context for
bare code blocks, then re-serializes the front matter with chunking metadata
and writes the result to its working copy.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ragprep.agents.base_agent import LLMBackedAgent
from ragprep.core import frontmatter
from ragprep.core.json_utils import extract_json
from ragprep.core.logging_utils import truncate_log_content
from ragprep.core.markdown import (
    extract_code_blocks,
    extract_headings,
    find_line,
    split_sections,
    word_count,
)
from ragprep.domain.exceptions import MissingCredentialError
from ragprep.models.enhancement import EnhancementOutcome

if TYPE_CHECKING:
    from ragprep.agents.base_agent import DocumentHandle

OVERSIZED_SECTION_WORDS = 500
HIGH_SEVERITY_SECTION_WORDS = 700
OPTIMAL_CHUNK_SIZE = 350
BASE_CHUNKING_SCORE = 70
MAX_CHUNKING_SCORE = 90
FALLBACK_CHUNKING_SCORE = 60
HEURISTIC_POINTS_PER_ACTION = 5

ENHANCED_BY = "rag-prep-plugin-chunking-restructurer"
FALLBACK_ENHANCED_BY = "rag-prep-plugin-chunking-fallback"


class StructuralIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["oversized_section", "heading_hierarchy_gap", "orphaned_code_block"]
    heading: str | None = None
    word_count: int | None = None
    line: int | None = None
    severity: Literal["medium", "high"] | None = None
    language: str | None = None


class RestructuringAction(BaseModel):
    """One edit proposed by the restructuring plan."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Literal["add_heading", "split_section", "add_bridge", "add_context"]
    level: int = Field(default=2, ge=1, le=6)
    text: str = ""
    insert_after: str = Field(default="", alias="insertAfter")
    original_heading: str = Field(default="", alias="originalHeading")
    new_subsections: list[str] = Field(default_factory=list, alias="newSubsections")
    split_points: list[str] = Field(default_factory=list, alias="splitPoints")
    bridge_text: str = Field(default="", alias="bridgeText")
    context_text: str = Field(default="", alias="contextText")
    reason: str = ""

    @property
    def anchor(self) -> str:
        return self.insert_after or self.original_heading


class RestructuringPlan(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    actions: list[RestructuringAction] = Field(default_factory=list)
    score_improvement: int = Field(default=0, ge=0, alias="scoreImprovement")
    summary: str = ""

    def count(self, action_type: str) -> int:
        return sum(1 for action in self.actions if action.type == action_type)


EMPTY_PLAN_SUMMARY = "Fallback restructuring - JSON parsing failed"


def identify_structural_issues(body: str) -> list[StructuralIssue]:
    issues: list[StructuralIssue] = []

    for section in split_sections(body):
        words = section.word_count
        if words > OVERSIZED_SECTION_WORDS:
            issues.append(
                StructuralIssue(
                    type="oversized_section",
                    heading=section.heading,
                    word_count=words,
                    line=section.start_line,
                    severity="high" if words > HIGH_SEVERITY_SECTION_WORDS else "medium",
                )
            )

    headings = extract_headings(body)
    for current, following in zip(headings, headings[1:], strict=False):
        if following.level - current.level > 1:
            issues.append(StructuralIssue(type="heading_hierarchy_gap", line=following.line))

    for block in extract_code_blocks(body):
        if not block.has_context:
            issues.append(
                StructuralIssue(
                    type="orphaned_code_block",
                    language=block.language,
                    line=body.count("\n", 0, block.offset),
                )
            )
    return issues


def _insert_lines(content: str, anchor: str, new_lines: list[str]) -> str:
    index = find_line(content, anchor)
    if index == -1:
        return content
    lines = content.split("\n")
    lines[index + 1 : index + 1] = new_lines
    return "\n".join(lines)


def _add_heading(content: str, level: int, text: str, anchor: str) -> str:
    if not text.strip():
        return content
    return _insert_lines(content, anchor, ["", f"{'#' * level} {text.strip()}", ""])


def apply_restructuring(body: str, plan: RestructuringPlan) -> str:
    """Apply the plan's actions to ``body``, last anchor first."""
    content = body
    ordered = sorted(plan.actions, key=lambda action: find_line(body, action.anchor), reverse=True)
    for action in ordered:
        if action.type == "add_heading":
            content = _add_heading(content, action.level, action.text, action.insert_after)
        elif action.type == "split_section":
            if action.original_heading not in content:
                continue
            pairs = zip(action.new_subsections, action.split_points, strict=False)
            for subsection, split_point in pairs:
                content = _add_heading(content, 3, subsection, split_point)
        elif action.type == "add_bridge" and action.bridge_text.strip():
            content = _insert_lines(content, action.insert_after, ["", action.bridge_text, ""])
        elif action.type == "add_context" and action.context_text.strip():
            content = _insert_lines(content, action.insert_after, ["", action.context_text, ""])
    return content


class ChunkingOptimizerAgent(LLMBackedAgent):
    """Restructures document sections toward retrieval-friendly chunk sizes."""

    name = "document-chunking-optimizer-agent"
    role = "Document Structure Enhancement Specialist"
    may_modify_content = True

    async def analyze(
        self, handle: DocumentHandle, content: str, current_metadata: dict[str, Any]
    ) -> EnhancementOutcome:
        self.log_info(f"Analyzing: {handle.source_path}")
        self._require_llm()

        try:
            return await self._restructure(handle, content, current_metadata)
        except MissingCredentialError:
            raise
        except Exception as exc:
            self.log_error(f"Error restructuring {handle.source_path}: {exc}")
            return self._fallback_outcome()

    async def _restructure(
        self, handle: DocumentHandle, content: str, current_metadata: dict[str, Any]
    ) -> EnhancementOutcome:
        parsed = frontmatter.parse(content)
        title = self.resolve_title(parsed, current_metadata)
        issues = identify_structural_issues(parsed.body)

        plan = await self._generate_plan(title, parsed.body, issues)
        restructured = apply_restructuring(parsed.body, plan)
        metadata = self._chunking_metadata(plan)

        final_content = frontmatter.stringify(
            restructured, {**parsed.data, **frontmatter.clean_metadata_for_yaml(metadata)}
        )
        await handle.write(final_content)
        self.log_info(
            f"Document structure enhanced: {handle.source_path}",
            actions=len(plan.actions),
            issues=len(issues),
        )

        return EnhancementOutcome(
            original_metadata=parsed.data,
            proposed_metadata=metadata,
            content=final_content,
            improvements=self._improvements(plan),
        )

    async def _generate_plan(
        self, title: str, body: str, issues: list[StructuralIssue]
    ) -> RestructuringPlan:
        llm = self._require_llm()
        result = await llm.generate(self._build_prompt(title, body, issues), json_mode=True)
        if not result.ok:
            self.log_warning(f"LLM restructuring failed: {result.error_text}")
            return self._heuristic_plan(issues)
        return self._parse_plan(result.response_text or "")

    def _build_prompt(self, title: str, body: str, issues: list[StructuralIssue]) -> str:
        return f"""You are a professional technical documentation editor.
Restructure this document for readability and AI retrieval.
Respond with ONLY valid JSON, no markdown formatting.

DOCUMENT ANALYSIS:
Title: "{title}"
Word Count: {word_count(body)}
Current Headings: {len(extract_headings(body))}
Structural Issues: {len(issues)}

CONTENT:
{body}

TASKS:
1. Add H2/H3 headings to break up sections over 400 words
2. Split oversized sections into logical subsections
3. Add semantic bridges between major sections
4. Add contextual sentences around bare code blocks

Preserve all original information. Keep sections to 200-400 words.

{{
  "actions": [
    {{"type": "add_heading", "level": 2, "text": "Heading", "insertAfter": "existing line text"}},
    {{"type": "split_section", "originalHeading": "Heading", "newSubsections": ["A"], "splitPoints": ["line text"]}},
    {{"type": "add_bridge", "bridgeText": "Sentence", "insertAfter": "existing line text"}},
    {{"type": "add_context", "contextText": "Sentence", "insertAfter": "existing line text"}}
  ],
  "scoreImprovement": 15,
  "summary": "Brief description"
}}"""

    def _parse_plan(self, response_text: str) -> RestructuringPlan:
        raw = extract_json(response_text)
        if raw is None or not isinstance(raw.get("actions"), list):
            self.log_warning(
                "Failed to parse restructuring plan, applying no changes",
                response_preview=truncate_log_content(response_text, 200),
            )
            return RestructuringPlan(summary=EMPTY_PLAN_SUMMARY)

        actions: list[RestructuringAction] = []
        for item in raw["actions"]:
            try:
                actions.append(RestructuringAction.model_validate(item))
            except ValidationError:
                self.log_warning("Skipping invalid restructuring action", action=str(item)[:200])

        score = raw.get("scoreImprovement")
        if not isinstance(score, int | float) or isinstance(score, bool) or score < 0:
            score = 0
        summary = raw.get("summary")
        return RestructuringPlan(
            actions=actions,
            score_improvement=int(score),
            summary=summary if isinstance(summary, str) else "",
        )

    @staticmethod
    def _heuristic_plan(issues: list[StructuralIssue]) -> RestructuringPlan:
        actions = [
            RestructuringAction(
                type="add_heading",
                level=3,
                text=f"{issue.heading} Details",
                insert_after=issue.heading or "",
                reason="Break up oversized section",
            )
            for issue in issues
            if issue.type == "oversized_section" and issue.severity == "high"
        ]
        return RestructuringPlan(
            actions=actions,
            score_improvement=len(actions) * HEURISTIC_POINTS_PER_ACTION,
            summary=f"Fallback restructuring: {len(actions)} improvements",
        )

    @staticmethod
    def _chunking_metadata(plan: RestructuringPlan) -> dict[str, Any]:
        now = datetime.now(UTC).isoformat()
        return {
            "chunkingEnhanced": True,
            "chunkingDate": now,
            "structureImprovements": len(plan.actions),
            "optimalChunkSize": OPTIMAL_CHUNK_SIZE,
            "chunkingScore": min(MAX_CHUNKING_SCORE, BASE_CHUNKING_SCORE + plan.score_improvement),
            "headingsAdded": plan.count("add_heading"),
            "sectionsRestructured": plan.count("split_section"),
            "semanticBridges": plan.count("add_bridge"),
            "enhanced_by": ENHANCED_BY,
            "enhanced_at": now,
        }

    @staticmethod
    def _improvements(plan: RestructuringPlan) -> list[str]:
        improvements: list[str] = []
        for action in plan.actions:
            if action.type == "add_heading":
                label = "H2" if action.level == 2 else "H3"
                improvements.append(f'Added {label} heading: "{action.text}"')
            elif action.type == "split_section":
                improvements.append(
                    f'Split "{action.original_heading}" into '
                    f"{len(action.new_subsections)} subsections"
                )
            elif action.type == "add_bridge":
                improvements.append("Added semantic bridge between sections")
            elif action.type == "add_context":
                improvements.append("Added context for code block")
        if plan.score_improvement:
            improvements.append(f"Structure score improved by {plan.score_improvement} points")
        return improvements

    def _fallback_outcome(self) -> EnhancementOutcome:
        return EnhancementOutcome(
            proposed_metadata={
                "chunkingEnhanced": False,
                "chunkingScore": FALLBACK_CHUNKING_SCORE,
                "enhanced_by": FALLBACK_ENHANCED_BY,
            },
            improvements=["Analysis completed (restructuring failed)"],
        )
