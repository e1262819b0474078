from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Mapping, Optional

import aiohttp

from stockwatch.core.errors import RequestTimeoutError, ServiceUnreachableError, UpstreamHTTPError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE_SECONDS = 1.0


def backoff_delay(attempt: int, base: float = DEFAULT_BACKOFF_BASE_SECONDS) -> float:
    """Seconds to wait before ``attempt`` (1-based); the first attempt never waits."""
    if attempt < 2:
        return 0.0
    return base * 2 ** (attempt - 2)


def _safe_url(url: str) -> str:
    # Query strings carry the access token.
    return url.split("?", 1)[0]


class ResilientFetcher:
    """GET + JSON decode with a per-attempt timeout, retries and exponential backoff.

    Permanent client errors (4xx other than 429) fail on the first attempt.
    Everything else is retried until ``max_attempts`` is spent, after which
    timeouts surface as :class:`RequestTimeoutError`, connectivity failures as
    :class:`ServiceUnreachableError` and any other cause is re-raised as is.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._sleep = sleep

    async def fetch_json(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        revalidate_seconds: Optional[int] = None,
    ) -> Any:
        headers = {}
        if revalidate_seconds is not None:
            headers["Cache-Control"] = f"max-age={int(revalidate_seconds)}"

        last_error: Optional[BaseException] = None
        for attempt in range(1, self._max_attempts + 1):
            if attempt > 1:
                delay = backoff_delay(attempt, self._backoff_base)
                logger.warning(
                    f"Attempt {attempt - 1} failed for {_safe_url(url)}. "
                    f"Retrying in {delay:.1f}s... ({last_error!r})"
                )
                await self._sleep(delay)

            try:
                return await asyncio.wait_for(self._get_json(url, params, headers), self._timeout)
            except UpstreamHTTPError as exc:
                if not exc.retryable:
                    logger.error(f"Request to {_safe_url(url)} failed with status {exc.status}; not retrying")
                    raise
                last_error = exc
            except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as exc:
                last_error = exc

        if isinstance(last_error, asyncio.TimeoutError):
            logger.error(f"Request timed out after {self._max_attempts} attempts: {_safe_url(url)}")
            raise RequestTimeoutError() from last_error
        if isinstance(last_error, aiohttp.ClientConnectionError):
            logger.error(f"Network error after retries: {last_error}")
            raise ServiceUnreachableError() from last_error

        logger.error(f"Failed to fetch {_safe_url(url)} after {self._max_attempts} attempts: {last_error!r}")
        raise last_error

    async def _get_json(self, url: str, params: Optional[Mapping[str, Any]], headers: Mapping[str, str]) -> Any:
        async with self._session.get(url, params=params, headers=headers) as response:
            if response.status >= 400:
                raise UpstreamHTTPError(response.status, _safe_url(url))
            return await response.json(content_type=None)
