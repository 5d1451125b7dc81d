"""Score consolidation and added-field collection across agent results."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ragprep.models.enhancement import AgentInvocationResult

SCORE_FIELD_ALIASES = ("ragScore", "chunkingScore", "validationScore", "seoScore")
# Also stands in for a successful result whose proposal carries no score, empty or not.
DEFAULT_SCORE = 75
MIN_SCORE = 0
MAX_SCORE = 100
PROVENANCE_PREFIX = "enhanced_"


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _is_score(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


def score_for(metadata: dict[str, Any]) -> int | float:
    """First positive finite score among the known aliases, clamped to 0-100, else the default."""
    for alias in SCORE_FIELD_ALIASES:
        value = metadata.get(alias)
        if _is_score(value):
            return max(MIN_SCORE, min(MAX_SCORE, value))
    return DEFAULT_SCORE


def consolidate_score(results: list[AgentInvocationResult]) -> int:
    """Average the per-agent scores of successful results, rounded half up.

    Every successful result contributes, an empty proposal counting as the
    default. With no successful results the default score is returned.
    """
    scores = [
        score_for(result.outcome.proposed_metadata)
        for result in results
        if result.succeeded and result.outcome is not None
    ]
    if not scores:
        return DEFAULT_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, round_half_up(sum(scores) / len(scores))))


def collect_added_fields(results: list[AgentInvocationResult]) -> list[str]:
    fields: dict[str, None] = {}
    for result in results:
        if not result.succeeded or result.outcome is None:
            continue
        for key in result.outcome.proposed_metadata:
            if not key.startswith(PROVENANCE_PREFIX):
                fields.setdefault(key, None)
    return list(fields)
