"""Rate-limited HTTP access to third-party metadata APIs."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping

import httpx

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = frozenset({500, 502, 503, 504})
MAX_BACKOFF_SECONDS = 8

Sleep = Callable[[float], Awaitable[None]]


class UpstreamError(RuntimeError):
    """Raised when an upstream API keeps failing after the retry budget."""

    def __init__(
        self, message: str, *, url: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def _retry_after_seconds(response: httpx.Response, default: float) -> float:
    value = response.headers.get("retry-after")
    if not value:
        return default
    try:
        return max(float(value), 0.0)
    except ValueError:
        return default


class RateLimitedClient:
    """Wraps an :class:`httpx.AsyncClient` with throttling and retries.

    Requests are spaced at least ``min_interval`` seconds apart. HTTP 429
    waits ``rate_limit_wait`` seconds (or the ``Retry-After`` value) before
    retrying; 5xx responses and transport errors back off exponentially.
    A 404 yields ``None``; other client errors raise :class:`UpstreamError`
    straight away.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        min_interval: float = 0.15,
        max_retries: int = 3,
        rate_limit_wait: float = 30.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = http_client
        self._min_interval = min_interval
        self._max_retries = max_retries
        self._rate_limit_wait = rate_limit_wait
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_request = 0.0

    async def _throttle(self) -> None:
        async with self._lock:
            wait = self._min_interval - (time.monotonic() - self._last_request)
            if wait > 0:
                await self._sleep(wait)
            self._last_request = time.monotonic()

    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response | None:
        attempt = 0
        while True:
            await self._throttle()
            try:
                response = await self._client.get(url, params=params, headers=headers)
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = min(2 ** (attempt - 1), MAX_BACKOFF_SECONDS)
                    logger.info(
                        "Transient error fetching %s (%s). Retrying in %ss",
                        url,
                        exc.__class__.__name__,
                        backoff,
                    )
                    await self._sleep(backoff)
                    continue
                logger.warning("Giving up on %s: %s", url, exc)
                raise UpstreamError(str(exc), url=url) from exc

            status = response.status_code
            if status == 429 or status in RETRY_STATUS_CODES:
                attempt += 1
                if attempt <= self._max_retries:
                    if status == 429:
                        wait = _retry_after_seconds(response, self._rate_limit_wait)
                        logger.info("Rate limited by %s. Waiting %.0fs", url, wait)
                    else:
                        wait = min(2 ** (attempt - 1), MAX_BACKOFF_SECONDS)
                        logger.info(
                            "Upstream %s from %s. Retrying in %ss", status, url, wait
                        )
                    await self._sleep(wait)
                    continue
                logger.warning("Giving up on %s after HTTP %s", url, status)
                raise UpstreamError(
                    f"HTTP {status} after {attempt} attempts",
                    url=url,
                    status_code=status,
                )

            if status == 404:
                return None
            if status >= 400:
                raise UpstreamError(f"HTTP {status}", url=url, status_code=status)
            return response

    async def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any | None:
        """Return the decoded JSON body, or ``None`` for a 404."""

        response = await self.get(url, params=params, headers=headers)
        if response is None:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Invalid JSON from {url}", url=url) from exc

    async def download(self, url: str, destination: Path) -> Path:
        """Stream a large file to ``destination``."""

        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        try:
            async with self._client.stream("GET", url) as response:
                response.raise_for_status()
                with partial.open("wb") as handle:
                    async for chunk in response.aiter_bytes():
                        handle.write(chunk)
        except httpx.HTTPError as exc:
            partial.unlink(missing_ok=True)
            raise UpstreamError(f"Download failed: {exc}", url=url) from exc
        partial.replace(destination)
        return destination
