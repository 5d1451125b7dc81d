"""Per-agent success and timing counters for one run."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ragprep.models.enhancement import AgentStats

logger = logging.getLogger(__name__)


class AgentStatistics:
    """Counters keyed by agent name.

    ``record`` is the only mutation path, so each invocation outcome is
    counted exactly once.
    """

    def __init__(self) -> None:
        self._stats: dict[str, AgentStats] = {}

    def reset(self, agent_names: Iterable[str]) -> None:
        self._stats = {name: AgentStats() for name in agent_names}

    def record(self, agent_name: str, *, success: bool, processing_time_ms: int = 0) -> None:
        stats = self._stats.setdefault(agent_name, AgentStats())
        if success:
            stats.successful += 1
            stats.total_processing_time_ms += max(0, processing_time_ms)
            stats.average_processing_time_ms = round(
                stats.total_processing_time_ms / stats.successful
            )
        else:
            stats.failed += 1

    def get(self, agent_name: str) -> AgentStats | None:
        stats = self._stats.get(agent_name)
        return stats.model_copy() if stats is not None else None

    def snapshot(self) -> dict[str, AgentStats]:
        """Return copies so later runs cannot mutate a returned summary."""
        return {name: stats.model_copy() for name, stats in self._stats.items()}
