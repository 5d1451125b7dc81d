"""Isolated execution of a single agent against a disposable working copy.

Agents never see the file on disk. Each invocation gets an in-memory working
copy from a ``WorkingCopyArena``; the copy is read back after the agent
returns and released on every exit path.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import re
import uuid
from typing import TYPE_CHECKING, Any

from ragprep.domain.exceptions import AgentFailure, IsolationError
from ragprep.models.enhancement import EnhancementOutcome

if TYPE_CHECKING:
    from ragprep.agents.base_agent import BaseAgent

logger = logging.getLogger(__name__)


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "agent"


class WorkingCopyArena:
    """In-memory store of disposable document copies, keyed per invocation."""

    def __init__(self) -> None:
        self._copies: dict[str, str] = {}
        self._sources: dict[str, str] = {}
        self._counter = itertools.count(1)

    @property
    def active_count(self) -> int:
        return len(self._copies)

    def acquire(self, agent_name: str, source_path: str, content: str) -> str:
        key = f"{_slug(agent_name)}-{next(self._counter)}-{uuid.uuid4().hex[:8]}"
        if key in self._copies:
            msg = f"Working copy key collision: {key}"
            raise IsolationError(msg, {"key": key})
        self._copies[key] = content
        self._sources[key] = source_path
        return key

    async def read(self, key: str) -> str:
        try:
            return self._copies[key]
        except KeyError as exc:
            msg = f"Working copy {key} does not exist"
            raise IsolationError(msg, {"key": key}) from exc

    async def write(self, key: str, content: str) -> None:
        if key not in self._copies:
            msg = f"Working copy {key} does not exist"
            raise IsolationError(msg, {"key": key})
        self._copies[key] = content

    def release(self, key: str) -> None:
        self._copies.pop(key, None)
        self._sources.pop(key, None)


class WorkingCopyHandle:
    """Handle over one arena working copy."""

    def __init__(self, arena: WorkingCopyArena, key: str, source_path: str):
        self._arena = arena
        self._key = key
        self._source_path = source_path

    @property
    def key(self) -> str:
        return self._key

    @property
    def source_path(self) -> str:
        return self._source_path

    async def read(self) -> str:
        return await self._arena.read(self._key)

    async def write(self, content: str) -> None:
        await self._arena.write(self._key, content)


class DetachedHandle:
    """Handle over a content value when no working copy could be set up.

    Writes are discarded.
    """

    def __init__(self, source_path: str, content: str):
        self._source_path = source_path
        self._content = content
        self._key = f"detached-{uuid.uuid4().hex[:8]}"

    @property
    def key(self) -> str:
        return self._key

    @property
    def source_path(self) -> str:
        return self._source_path

    async def read(self) -> str:
        return self._content

    async def write(self, content: str) -> None:
        logger.debug("detached_write_discarded", extra={"source_path": self._source_path})


class SafeAgentRunner:
    """Runs one agent on one document without touching the source file."""

    def __init__(self, arena: WorkingCopyArena | None = None, *, timeout_sec: float | None = None):
        self.arena = arena or WorkingCopyArena()
        self.timeout_sec = timeout_sec

    async def run_safely(
        self,
        agent: BaseAgent,
        source_path: str,
        content: str,
        current_metadata: dict[str, Any],
    ) -> EnhancementOutcome:
        """Invoke ``agent`` against an isolated copy of ``content``.

        Returns:
            The agent's outcome with ``content`` equal to the input unless the
            agent is allowed to restructure and actually changed it.

        Raises:
            AgentFailure: If the agent raises, times out, or both isolation and
                the detached fallback fail.
        """
        try:
            key = self.arena.acquire(agent.name, source_path, content)
        except IsolationError as exc:
            logger.warning(
                "[SafeRunner] Isolation setup failed for %s, running detached: %s",
                agent.name,
                exc.message,
                extra={"agent": agent.name, "source_path": source_path},
            )
            return await self._run_detached(agent, source_path, content, current_metadata)

        try:
            handle = WorkingCopyHandle(self.arena, key, source_path)
            outcome = await self._invoke(agent, handle, content, current_metadata)

            try:
                copy_content = await self.arena.read(key)
            except IsolationError as exc:
                logger.warning(
                    "[SafeRunner] Could not read back working copy %s, treating as unchanged: %s",
                    key,
                    exc.message,
                    extra={"agent": agent.name, "source_path": source_path},
                )
                copy_content = content
        finally:
            self.arena.release(key)

        return self._resolve_content(agent, outcome, content, copy_content)

    async def _invoke(
        self,
        agent: BaseAgent,
        handle: Any,
        content: str,
        current_metadata: dict[str, Any],
    ) -> EnhancementOutcome:
        call = agent.analyze(handle, content, dict(current_metadata))
        try:
            if self.timeout_sec is not None:
                return await asyncio.wait_for(call, timeout=self.timeout_sec)
            return await call
        except AgentFailure:
            raise
        except TimeoutError as exc:
            msg = f"{agent.name} timed out after {self.timeout_sec}s"
            raise AgentFailure(msg, agent_name=agent.name) from exc
        except Exception as exc:
            raise AgentFailure(
                f"{agent.name} failed: {exc}",
                agent_name=agent.name,
                details={"error_type": type(exc).__name__},
            ) from exc

    async def _run_detached(
        self,
        agent: BaseAgent,
        source_path: str,
        content: str,
        current_metadata: dict[str, Any],
    ) -> EnhancementOutcome:
        handle = DetachedHandle(source_path, content)
        try:
            outcome = await self._invoke(agent, handle, content, current_metadata)
        except AgentFailure as exc:
            raise AgentFailure(
                f"{agent.name} failed in detached fallback: {exc.message}",
                agent_name=agent.name,
                details=exc.details,
            ) from exc
        return outcome.model_copy(update={"content": content})

    @staticmethod
    def _resolve_content(
        agent: BaseAgent, outcome: EnhancementOutcome, content: str, copy_content: str
    ) -> EnhancementOutcome:
        if copy_content != content:
            candidate = copy_content
        elif outcome.content is not None:
            candidate = outcome.content
        else:
            candidate = content

        if candidate != content and not agent.may_modify_content:
            logger.warning(
                "[SafeRunner] Ignoring content change from %s (not a restructuring agent)",
                agent.name,
                extra={"agent": agent.name},
            )
            candidate = content

        return outcome.model_copy(update={"content": candidate})
