"""Exponential backoff for the httpx-based service clients."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, TypeVar

import httpx

from ragprep.domain.exceptions import UpstreamServiceError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# HTTP status codes that should trigger a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 30.0  # seconds
DEFAULT_JITTER = 0.1  # 10% jitter


def is_retryable_error(exc: Exception) -> bool:
    """Return True for transient transport failures and retryable status codes."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.ConnectError | httpx.TimeoutException)


def calculate_delay(attempt: int, base_delay: float, max_delay: float, jitter: float) -> float:
    """Calculate delay with exponential backoff and jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        jitter: Jitter factor (0.1 = 10% random variation)

    Returns:
        Delay in seconds
    """
    delay = min(base_delay * (2**attempt), max_delay)
    return delay + delay * jitter * random.random()


def _status_of(exc: Exception) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    service: str,
    operation_name: str = "operation",
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    jitter: float = DEFAULT_JITTER,
) -> T:
    """Execute an async HTTP call with exponential backoff retry.

    Non-retryable HTTP errors are raised immediately as ``UpstreamServiceError``;
    retryable ones are retried up to ``max_retries`` times before the same
    error type is raised.
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except httpx.HTTPError as exc:
            if not is_retryable_error(exc):
                raise UpstreamServiceError(
                    f"{service} {operation_name} failed: {exc}",
                    service=service,
                    status_code=_status_of(exc),
                ) from exc

            if attempt == max_retries:
                logger.error(
                    "upstream_retry_exhausted",
                    extra={
                        "service": service,
                        "operation": operation_name,
                        "attempts": attempt + 1,
                        "error": str(exc),
                    },
                )
                raise UpstreamServiceError(
                    f"{service} {operation_name} failed after {attempt + 1} attempts: {exc}",
                    service=service,
                    status_code=_status_of(exc),
                    details={"attempts": attempt + 1},
                ) from exc

            delay = calculate_delay(attempt, base_delay, max_delay, jitter)
            logger.warning(
                "upstream_retry_attempt",
                extra={
                    "service": service,
                    "operation": operation_name,
                    "attempt": attempt + 1,
                    "max_retries": max_retries,
                    "delay_seconds": round(delay, 2),
                    "error": str(exc),
                },
            )
            await asyncio.sleep(delay)

    msg = f"{service} {operation_name} failed"
    raise UpstreamServiceError(msg, service=service)
