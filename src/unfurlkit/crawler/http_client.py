"""
aiohttp transport producing streaming ``Page`` objects.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Optional

import aiohttp
import structlog

from unfurlkit.config.config import Config
from unfurlkit.observability.metrics import METRICS
from unfurlkit.protocols import Headers, Page, TransportError
from unfurlkit.utils.streams import IteratorStream

logger = structlog.get_logger(__name__)

RETRY_STATUSES = frozenset({429, 502, 503, 504})


def collect_headers(response: aiohttp.ClientResponse) -> Headers:
    """Lower-cased header names; a repeated header becomes a list in arrival order."""
    headers: Headers = {}
    for name, value in response.headers.items():
        key = name.lower()
        existing = headers.get(key)
        if existing is None:
            headers[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            headers[key] = [existing, value]
    return headers


class HttpClient:
    """HTTP transport with retries and observability.

    The client is a ``Request``: ``await client(url, accept=...)`` returns a
    ``Page`` as soon as the response headers arrive. The body is streamed
    from the connection, which is released when the body is destroyed or the
    page aborted.
    """

    def __init__(self, config: Config):
        self.config = config
        self.crawler_config = config.crawler

        self.session: Optional[aiohttp.ClientSession] = None
        self._is_initialized = False
        self._in_flight_requests = 0

        logger.debug(
            "HTTP client created",
            max_retries=self.crawler_config.max_retries,
            user_agent=self.crawler_config.user_agent,
        )

    async def initialize(self) -> None:
        """Open the shared aiohttp session; a second call is a no-op."""
        if self.session is None:
            # Body reads are unbounded in time; only connect and idle reads are limited.
            timeout = aiohttp.ClientTimeout(
                total=None,
                connect=self.crawler_config.timeout,
                sock_read=self.crawler_config.timeout,
            )
            self.session = aiohttp.ClientSession(
                timeout=timeout, headers={"User-Agent": self.crawler_config.user_agent}
            )
            self._is_initialized = True
            logger.debug("HTTP client session initialized")

    async def close(self) -> None:
        """Close the session and drop pooled connections."""
        if self.session:
            await self.session.close()
            self.session = None
        self._is_initialized = False
        logger.debug("HTTP client closed")

    async def __aenter__(self) -> "HttpClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _perform_request(self, url: str, accept: Optional[str]) -> aiohttp.ClientResponse:
        """Issue one GET; returns as soon as the status line and headers are in."""
        if not self._is_initialized:
            raise RuntimeError("session is not open")

        headers = {"Accept": accept} if accept else None
        timeout = self.crawler_config.timeout
        try:
            async with asyncio.timeout(timeout):
                assert self.session is not None
                return await self.session.get(
                    url, headers=headers, max_redirects=self.crawler_config.max_redirects
                )
        except asyncio.TimeoutError:
            raise asyncio.TimeoutError(f"no response headers within {timeout}s")

    def _should_retry(self, response: aiohttp.ClientResponse, attempt: int, max_retries: int) -> bool:
        """Transient gateway failures and rate limiting are retried while attempts remain."""
        if attempt > max_retries:
            return False
        return response.status in RETRY_STATUSES

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before attempt ``attempt + 1``: doubling from one second, jittered by a fifth."""
        return float(2 ** (attempt - 1)) * random.uniform(0.8, 1.2)

    def _set_in_flight(self, delta: int) -> None:
        self._in_flight_requests += delta
        METRICS["crawler_in_flight_requests"].set(self._in_flight_requests)

    async def request(self, url: str, *, accept: Optional[str] = None) -> Page:
        """
        Fetch ``url`` with retries.

        Args:
            url: absolute http(s) URL
            accept: Value of the ``Accept`` request header

        Returns:
            Page whose body streams the response content

        Raises:
            TransportError: every attempt failed before a response arrived
        """
        if not self._is_initialized:
            raise RuntimeError("HttpClient used before initialize() or after close()")

        max_retries = self.crawler_config.max_retries
        started = time.time()
        self._set_in_flight(1)
        last_error = ""
        try:
            for attempt in range(1, max_retries + 2):
                try:
                    response = await self._perform_request(url, accept)
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    last_error = str(e) or e.__class__.__name__
                    logger.warning("Fetch attempt failed", url=url, attempt=attempt, max_retries=max_retries, error=last_error)
                    if attempt <= max_retries:
                        await asyncio.sleep(self._calculate_backoff_delay(attempt))
                    continue

                if self._should_retry(response, attempt, max_retries):
                    logger.info(
                        "Retryable status, backing off",
                        url=url,
                        status=response.status,
                        attempt=attempt,
                        max_retries=max_retries,
                    )
                    response.close()
                    await asyncio.sleep(self._calculate_backoff_delay(attempt))
                    continue

                METRICS["crawler_responses_total"].labels(status_class=f"{response.status // 100}xx").inc()
                METRICS["crawler_fetch_latency_seconds"].observe(time.time() - started)
                return Page(
                    url=str(response.url),
                    status=response.status,
                    headers=collect_headers(response),
                    body=IteratorStream(
                        response.content.iter_chunked(self.crawler_config.chunk_size),
                        on_close=response.close,
                    ),
                    abort=response.close,
                )
        finally:
            self._set_in_flight(-1)

        raise TransportError(url, reason=last_error or "retries exhausted")

    async def __call__(self, url: str, *, accept: Optional[str] = None) -> Page:
        return await self.request(url, accept=accept)
