"""Data models for the document enhancement pipeline backed by Pydantic validation."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_METADATA_ARRAY_ITEMS = 10


def sanitize_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Reduce a proposed metadata mapping to flat, YAML-friendly values.

    Strings, numbers and booleans are kept as-is; sequences keep their
    non-empty string items (capped at ``MAX_METADATA_ARRAY_ITEMS``); any other
    value is dropped.
    """
    if not metadata:
        return {}

    cleaned: dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, str | bool | int | float):
            cleaned[str(key)] = value
        elif isinstance(value, list | tuple):
            items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
            cleaned[str(key)] = items[:MAX_METADATA_ARRAY_ITEMS]
    return cleaned


class Document(BaseModel):
    """A discovered Markdown document handed to the orchestrator."""

    model_config = ConfigDict(frozen=True)

    relative_path: str
    absolute_path: str
    title: str
    body: str
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    word_count: int = Field(default=0, ge=0)
    needs_enhancement: bool = True


class AgentDescriptor(BaseModel):
    """Identity of one enhancement capability within a run."""

    model_config = ConfigDict(frozen=True)

    name: str
    role: str
    position: int = Field(ge=0)


class ContentSnapshot(BaseModel):
    """One stage of a document's content evolution."""

    model_config = ConfigDict(frozen=True)

    stage: str
    content: str
    word_count: int = Field(ge=0)


class EnhancementOutcome(BaseModel):
    """What an agent proposes for one document."""

    model_config = ConfigDict(frozen=True)

    original_metadata: dict[str, Any] = Field(default_factory=dict)
    proposed_metadata: dict[str, Any] = Field(default_factory=dict)
    content: str | None = None
    improvements: list[str] = Field(default_factory=list)

    @field_validator("proposed_metadata", mode="before")
    @classmethod
    def _sanitize_proposed(cls, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            return {}
        return sanitize_metadata(value)

    @field_validator("improvements", mode="before")
    @classmethod
    def _clean_improvements(cls, value: Any) -> list[str]:
        if not isinstance(value, list | tuple):
            return []
        return [str(item).strip() for item in value if item and str(item).strip()]

    def changes_content(self, current: str) -> bool:
        """Return True when this outcome carries content different from ``current``."""
        return self.content is not None and self.content != current


class AgentInvocationResult(BaseModel):
    """Result of running one agent on one document."""

    model_config = ConfigDict(frozen=True)

    agent_name: str
    agent_role: str
    outcome: EnhancementOutcome | None = None
    processing_time_ms: int = Field(default=0, ge=0)
    content_modified: bool = False
    sequence_position: int = Field(ge=1)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.outcome is not None


class DocumentEnhancement(BaseModel):
    """Consolidated outcome for one document."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    relative_path: str
    title: str
    original_content: str
    final_content: str
    content_snapshots: list[ContentSnapshot]
    agent_results: list[AgentInvocationResult]
    improvements: list[str] = Field(default_factory=list)
    consolidated_score: int = Field(ge=0, le=100)
    added_fields: list[str] = Field(default_factory=list)
    total_processing_time_ms: int = Field(default=0, ge=0)

    @property
    def content_changed(self) -> bool:
        return self.final_content != self.original_content


class AgentStats(BaseModel):
    """Per-agent counters for one run."""

    successful: int = 0
    failed: int = 0
    total_processing_time_ms: int = 0
    average_processing_time_ms: int = 0

    @property
    def total(self) -> int:
        return self.successful + self.failed

    @property
    def success_rate(self) -> int:
        if self.total == 0:
            return 0
        return int(self.successful / self.total * 100 + 0.5)


class ProposedChange(BaseModel):
    """One file of the change set handed to the publisher."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    relative_path: str
    enhanced_content: str
    original_content: str
    improvements: list[str] = Field(default_factory=list)
    consolidated_score: int = Field(ge=0, le=100)
    added_fields: list[str] = Field(default_factory=list)

    @classmethod
    def from_enhancement(cls, enhancement: DocumentEnhancement) -> ProposedChange:
        return cls(
            file_path=enhancement.file_path,
            relative_path=enhancement.relative_path,
            enhanced_content=enhancement.final_content,
            original_content=enhancement.original_content,
            improvements=list(enhancement.improvements),
            consolidated_score=enhancement.consolidated_score,
            added_fields=list(enhancement.added_fields),
        )


class PublishOutcome(BaseModel):
    """What the change-set publisher reports back."""

    model_config = ConfigDict(frozen=True)

    success: bool
    status: str = "pending_review"
    identifier: int | None = None
    location_url: str | None = None
    branch_name: str | None = None
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> PublishOutcome:
        return cls(success=False, status="failed", error=error)

    @classmethod
    def skipped(cls, reason: str) -> PublishOutcome:
        return cls(success=False, status="skipped", error=reason)


class AddedFieldCount(BaseModel):
    """How many documents gained a given metadata field."""

    model_config = ConfigDict(frozen=True)

    field: str
    count: int = Field(ge=1)


class BatchError(BaseModel):
    """A document that could not be processed."""

    model_config = ConfigDict(frozen=True)

    document: str
    title: str
    error: str


class BatchSummary(BaseModel):
    """Batch-level statistics."""

    total_documents: int = Field(default=0, ge=0)
    successful: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    average_score: int = Field(default=0, ge=0, le=100)
    total_improvements: int = Field(default=0, ge=0)
    total_processing_time_ms: int = Field(default=0, ge=0)
    agent_count: int = Field(default=0, ge=0)
    agent_collaborations: int = Field(default=0, ge=0)
    top_added_fields: list[AddedFieldCount] = Field(default_factory=list)
    agent_statistics: dict[str, AgentStats] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    change_set: PublishOutcome | None = None
    message: str | None = None


class BatchResult(BaseModel):
    """Structured outcome of a batch run."""

    success: bool
    summary: BatchSummary | None = None
    enhancements: list[DocumentEnhancement] = Field(default_factory=list)
    errors: list[BatchError] = Field(default_factory=list)
    run_log_path: str | None = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
