"""Tavily web search client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from ragprep.adapters.http_retry import DEFAULT_BASE_DELAY, DEFAULT_MAX_RETRIES, retry_with_backoff
from ragprep.adapters.search.models import SearchHit, SearchResponse

if TYPE_CHECKING:
    from typing import Self

    from ragprep.config.settings import TavilyConfig

logger = logging.getLogger(__name__)


class TavilyClient:
    """Async HTTP client for the Tavily search API."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.tavily.com",
        timeout: float = 30.0,
        max_results: int = 5,
        search_depth: str = "basic",
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Tavily client.

        Args:
            api_key: Tavily API key
            api_url: Base URL of the API
            timeout: Request timeout in seconds
            max_results: Default number of results per query
            search_depth: ``basic`` or ``advanced``
            max_retries: Retry attempts for transient failures
            retry_base_delay: Base delay between retries in seconds
            transport: Optional httpx transport (used by tests)
        """
        if not api_key:
            msg = "Tavily API key is required"
            raise ValueError(msg)
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_results = max_results
        self.search_depth = search_depth
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: TavilyConfig) -> TavilyClient:
        if not config.api_key:
            msg = "Tavily API key is required"
            raise ValueError(msg)
        return cls(
            config.api_key,
            api_url=config.base_url,
            timeout=config.timeout_sec,
            max_results=config.max_results,
            search_depth=config.search_depth,
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
        """Get the HTTP client, creating it on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def search(
        self,
        query: str,
        *,
        max_results: int | None = None,
        search_depth: str | None = None,
        include_answer: bool = False,
    ) -> list[SearchHit]:
        """Run one web search and return its hits, best first.

        Raises:
            UpstreamServiceError: If the API keeps failing or rejects the request.
        """
        payload = {
            "query": query,
            "max_results": max_results or self.max_results,
            "search_depth": search_depth or self.search_depth,
            "include_answer": include_answer,
        }

        async def _fetch() -> SearchResponse:
            response = await self.client.post("/search", json=payload)
            response.raise_for_status()
            return SearchResponse.model_validate(response.json())

        result = await retry_with_backoff(
            _fetch,
            service="tavily",
            operation_name="search",
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )
        hits = sorted(result.results, key=lambda hit: hit.score, reverse=True)
        logger.info("tavily_search_complete", extra={"query": query, "hits": len(hits)})
        return hits
