"""Publishes a batch's proposed changes as one GitHub pull request."""

from __future__ import annotations

import logging
import time
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from ragprep.adapters.github.pr_description import build_pr_description, build_pr_title
from ragprep.domain.exceptions import PublishFailure, UpstreamServiceError
from ragprep.models.enhancement import PublishOutcome

if TYPE_CHECKING:
    from collections.abc import Callable

    from ragprep.adapters.github.client import GitHubClient
    from ragprep.models.enhancement import BatchSummary, ProposedChange

logger = logging.getLogger(__name__)


class GitHubPullRequestPublisher:
    """Creates a branch, commits each enhanced file from memory and opens a PR.

    Local files are never read or written; the enhanced content travels only
    through the GitHub API.
    """

    def __init__(
        self,
        client: GitHubClient,
        *,
        branch_prefix: str = "rag-enhancements",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._branch_prefix = branch_prefix
        self._clock = clock

    def _branch_name(self) -> str:
        return f"{self._branch_prefix}-{int(self._clock() * 1000)}"

    async def publish(self, changes: list[ProposedChange], summary: BatchSummary) -> PublishOutcome:
        """Open the pull request.

        Raises:
            PublishFailure: If the branch or pull request cannot be created.
        """
        logger.info("[GitHub PR] Creating enhancement pull request for %d files", len(changes))
        try:
            base_branch = await self._client.get_default_branch()
            base_sha = await self._client.get_branch_sha(base_branch)
            branch = self._branch_name()
            await self._client.create_branch(branch, base_sha)

            committed = 0
            for change in changes:
                if await self._commit_change(branch, change):
                    committed += 1

            pull = await self._client.create_pull_request(
                title=build_pr_title(summary),
                head=branch,
                base=base_branch,
                body=build_pr_description(changes, summary),
            )
        except UpstreamServiceError as exc:
            raise PublishFailure(
                f"Pull request creation failed: {exc.message}",
                {"service": exc.service, "status_code": exc.status_code},
            ) from exc

        logger.info(
            "[GitHub PR] Created PR #%s: %s",
            pull.get("number"),
            pull.get("html_url"),
            extra={"branch": branch, "files_committed": committed},
        )
        return PublishOutcome(
            success=True,
            status="pending_review",
            identifier=pull.get("number"),
            location_url=pull.get("html_url"),
            branch_name=branch,
        )

    async def _commit_change(self, branch: str, change: ProposedChange) -> bool:
        if not change.enhanced_content:
            return False
        path = change.relative_path
        try:
            sha = await self._client.get_file_sha(path, branch)
            await self._client.put_file(
                path,
                change.enhanced_content,
                message=f"Propose RAG enhancement for {PurePosixPath(path).name}",
                branch=branch,
                sha=sha,
            )
        except UpstreamServiceError as exc:
            logger.error(
                "[GitHub PR] Error committing %s: %s",
                path,
                exc.message,
                extra={"status_code": exc.status_code},
            )
            return False
        logger.info("[GitHub PR] Proposed enhancement: %s", path)
        return True
