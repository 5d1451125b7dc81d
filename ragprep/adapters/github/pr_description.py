"""Pull request text for a batch of proposed enhancements."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ragprep.models.enhancement import BatchSummary, ProposedChange


def build_pr_title(summary: BatchSummary) -> str:
    return f"RAG Documentation Enhancement - {summary.successful} files to improve"


def build_pr_description(changes: list[ProposedChange], summary: BatchSummary) -> str:
    processed = summary.successful + summary.failed
    success_rate = round(summary.successful / processed * 100) if processed else 0

    lines = [
        "## Proposed RAG Documentation Enhancement",
        "",
        "Proposed metadata and structure improvements for search and retrieval.",
        "Local files stay unchanged until this pull request is reviewed and merged.",
        "",
        "### Summary",
        f"- **Files to enhance**: {summary.successful}/{summary.total_documents}",
        f"- **Average score**: {summary.average_score}/100",
        f"- **Success rate**: {success_rate}%",
        f"- **Agents**: {summary.agent_count} ({summary.agent_collaborations} collaborations)",
    ]

    if summary.top_added_fields:
        lines += ["", "### New metadata fields"]
        lines += [
            f"- **{item.field}**: added to {item.count} files" for item in summary.top_added_fields
        ]

    lines += ["", "### Files"]
    for change in changes:
        name = PurePosixPath(change.relative_path).name
        fields = ", ".join(change.added_fields) or "metadata updates"
        improvements = ", ".join(change.improvements) or "enhanced metadata"
        lines += [
            "",
            f"#### `{name}`",
            f"- **New fields**: {fields}",
            f"- **Score**: {change.consolidated_score}/100",
            f"- **Improvements**: {improvements}",
        ]

    lines += [
        "",
        "### Review checklist",
        "- Front matter is accurate",
        "- Topic categorization fits the content",
        "- Structural changes keep the original meaning",
        "",
    ]
    return "\n".join(lines)
