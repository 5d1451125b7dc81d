"""GitHub REST API client covering the calls needed to open a pull request."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

import httpx

from ragprep.adapters.http_retry import DEFAULT_BASE_DELAY, DEFAULT_MAX_RETRIES, retry_with_backoff
from ragprep.domain.exceptions import UpstreamServiceError

if TYPE_CHECKING:
    from typing import Self

    from ragprep.config.settings import GitHubConfig

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class GitHubClient:
    """Async HTTP client for one repository on the GitHub REST API."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            msg = "GitHub token is required"
            raise ValueError(msg)
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: GitHubConfig) -> GitHubClient:
        if not (config.token and config.owner and config.repo):
            msg = "GITHUB_TOKEN, GITHUB_OWNER and GITHUB_REPO must all be set"
            raise ValueError(msg)
        return cls(
            config.token,
            config.owner,
            config.repo,
            api_url=config.api_url,
            timeout=config.timeout_sec,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _request(
        self,
        method: str,
        path: str,
        operation_name: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        async def _send() -> dict[str, Any]:
            response = await self.client.request(method, path, json=json, params=params)
            response.raise_for_status()
            return response.json()

        return await retry_with_backoff(
            _send,
            service="github",
            operation_name=operation_name,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )

    async def get_default_branch(self) -> str:
        data = await self._request("GET", self._repo_path, "get_repository")
        return str(data["default_branch"])

    async def get_branch_sha(self, branch: str) -> str:
        data = await self._request("GET", f"{self._repo_path}/git/ref/heads/{branch}", "get_ref")
        return str(data["object"]["sha"])

    async def create_branch(self, branch: str, sha: str) -> None:
        await self._request(
            "POST",
            f"{self._repo_path}/git/refs",
            "create_ref",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )
        logger.info("github_branch_created", extra={"branch": branch, "repo": self.repo})

    async def get_file_sha(self, path: str, ref: str) -> str | None:
        """Return the blob SHA of ``path`` on ``ref``, or None when it does not exist."""
        try:
            data = await self._request(
                "GET", f"{self._repo_path}/contents/{path}", "get_content", params={"ref": ref}
            )
        except UpstreamServiceError as exc:
            if exc.status_code == 404:
                return None
            raise
        return data.get("sha")

    async def put_file(
        self, path: str, content: str, *, message: str, branch: str, sha: str | None = None
    ) -> None:
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        await self._request("PUT", f"{self._repo_path}/contents/{path}", "put_content", json=body)

    async def create_pull_request(
        self, *, title: str, head: str, base: str, body: str
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"{self._repo_path}/pulls",
            "create_pull",
            json={"title": title, "head": head, "base": base, "body": body},
        )
