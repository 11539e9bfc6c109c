"""HTTP fetcher with timeout and bounded retry/backoff."""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog
from tenacity import RetryError

from partcatalog.core.exceptions import FetchError, ParseError
from partcatalog.scrapers.utils.retry import http_retrying


logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Fetcher:
    """Issues HTTP GETs for one crawl and owns the underlying httpx client.

    Each fetch retries transport failures and non-2xx responses with
    exponential backoff. The backoff sleeps only suspend the calling task,
    so concurrent crawls of other retailers keep running.

    Use as an async context manager so the client is closed after the run:

        async with Fetcher() as fetcher:
            html = await fetcher.fetch("https://example.com/page/2/")
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 3,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the fetcher.

        Args:
            client: Optional pre-built client (tests pass one with a MockTransport)
            max_retries: Total attempts per URL before giving up
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header sent with every request
            sleep: Coroutine used for backoff waits
        """
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/json;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Fetch a URL and return the response body as text.

        An empty 2xx body is returned as-is; deciding what emptiness means
        is up to the caller.

        Args:
            url: Absolute URL to fetch
            params: Optional query parameters

        Returns:
            Decoded response body

        Raises:
            FetchError: If every attempt failed; carries the last cause
        """
        try:
            async for attempt in http_retrying(self.max_retries, sleep=self._sleep):
                with attempt:
                    logger.debug(
                        "fetching_url",
                        url=url,
                        params=params,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    response = await self._client.get(
                        url,
                        params=params,
                        headers=self._headers,
                        timeout=self.timeout,
                    )
                    response.raise_for_status()
                    return response.text
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(
                "fetch_failed",
                url=url,
                attempts=self.max_retries,
                error=str(cause),
            )
            raise FetchError(url, self.max_retries, cause) from cause

        # AsyncRetrying either returns from the attempt block or raises
        raise FetchError(url, self.max_retries)

    async def fetch_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Fetch a URL and decode its JSON body.

        Args:
            url: Absolute URL to fetch
            params: Optional query parameters

        Returns:
            Decoded JSON document

        Raises:
            FetchError: If every attempt failed
            ParseError: If the body is not valid JSON (not retried)
        """
        body = await self.fetch(url, params=params)
        try:
            return json.loads(body)
        except ValueError as e:
            raise ParseError(url, f"invalid JSON body: {e}") from e
