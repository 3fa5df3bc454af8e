"""
Feed fetching for Parallax.

This is the default implementation of the fetch boundary: given a URL it
returns the raw body and content type, or an explicit failure. Anything with
the same call shape (async url -> FetchResult) can replace it.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import aiohttp
import async_timeout
import backoff
from tqdm import tqdm

from parallax.config import get_config
from parallax.utils.http import RateLimiter, domain_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Outcome of fetching one URL: a body, or an error message."""
    url: str
    ok: bool
    body: str = ""
    content_type: str = ""
    error: str = ""

    @classmethod
    def failure(cls, url: str, error: str) -> "FetchResult":
        return cls(url=url, ok=False, error=error)


Fetch = Callable[[str], Awaitable[FetchResult]]


def _is_permanent(exc: Exception) -> bool:
    """Malformed URLs and client errors other than rate limiting are not worth retrying."""
    if isinstance(exc, aiohttp.InvalidURL):
        return True
    return (
        isinstance(exc, aiohttp.ClientResponseError)
        and 400 <= exc.status < 500
        and exc.status != 429
    )


class FeedFetcher:
    """
    Fetches feed and search-API bodies with retries, timeouts and per-domain
    rate limiting.
    """
    def __init__(self, timeout: Optional[float] = None, user_agent: Optional[str] = None,
                 requests_per_second: Optional[float] = None,
                 domain_headers: Optional[Mapping[str, Mapping[str, str]]] = None):
        """
        Initialize the FeedFetcher.

        Args:
            timeout: Per-request timeout in seconds (fetch.timeout_seconds)
            user_agent: User-Agent header (fetch.user_agent)
            requests_per_second: Per-domain rate (fetch.requests_per_second)
            domain_headers: Extra headers (e.g. API keys) sent only to the given domains
        """
        self.timeout = timeout if timeout is not None else get_config("fetch.timeout_seconds", 15)
        rate = requests_per_second if requests_per_second is not None \
            else get_config("fetch.requests_per_second", 1)
        self.rate_limiter = RateLimiter(float(rate))
        self.headers = {
            "User-Agent": user_agent or get_config("fetch.user_agent", "Parallax Lens/0.1"),
            "Accept": "application/rss+xml, application/atom+xml, application/json;q=0.9, "
                      "text/xml;q=0.8, */*;q=0.5",
        }
        self.domain_headers = {d.lower(): dict(h) for d, h in (domain_headers or {}).items()}
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Lazily created aiohttp session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self.headers)
        return self._session

    async def close_session(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "FeedFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close_session()

    @backoff.on_exception(
        backoff.expo,
        (aiohttp.ClientError, asyncio.TimeoutError),
        max_tries=lambda: get_config("fetch.max_tries", 3),
        giveup=_is_permanent,
    )
    async def _get(self, url: str) -> FetchResult:
        domain = domain_of(url)
        await self.rate_limiter.acquire(domain)
        try:
            async with async_timeout.timeout(self.timeout):
                extra = self.domain_headers.get(domain)
                async with self.session.get(url, headers=extra) as response:
                    response.raise_for_status()
                    body = await response.text(errors="replace")
                    content_type = response.headers.get("Content-Type", "")
        except (aiohttp.ClientError, asyncio.TimeoutError):
            self.rate_limiter.report_failure(domain)
            raise
        self.rate_limiter.report_success(domain)
        return FetchResult(url=url, ok=True, body=body, content_type=content_type)

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch one URL.

        Args:
            url: Feed or search-API URL

        Returns:
            FetchResult; failures are returned, not raised
        """
        try:
            return await self._get(url)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out fetching {url}")
            return FetchResult.failure(url, f"timeout after {self.timeout}s")
        except aiohttp.ClientError as e:
            logger.warning(f"Error fetching {url}: {e}")
            return FetchResult.failure(url, str(e) or e.__class__.__name__)
        except ValueError as e:
            # malformed URLs
            logger.warning(f"Invalid feed URL {url}: {e}")
            return FetchResult.failure(url, str(e))


async def fetch_all(urls: Iterable[str], fetch: Fetch,
                    max_concurrent: Optional[int] = None,
                    progress: bool = False) -> Dict[str, FetchResult]:
    """
    Fetch many URLs concurrently.

    Args:
        urls: URLs to fetch; repeats are fetched once
        fetch: The fetch callable (e.g. FeedFetcher().fetch)
        max_concurrent: Concurrency limit (fetch.max_concurrent)
        progress: Show a tqdm progress bar

    Returns:
        Dict mapping every URL to its FetchResult
    """
    unique: List[str] = list(dict.fromkeys(urls))
    limit = max_concurrent or get_config("fetch.max_concurrent", 5)
    semaphore = asyncio.Semaphore(limit)

    async def fetch_with_semaphore(url: str) -> Tuple[str, FetchResult]:
        async with semaphore:
            try:
                return url, await fetch(url)
            except Exception as e:  # injected fetchers may raise; the boundary must not
                logger.warning(f"Fetcher raised for {url}: {e}")
                return url, FetchResult.failure(url, str(e) or e.__class__.__name__)

    results: Dict[str, FetchResult] = {}
    tasks = [fetch_with_semaphore(url) for url in unique]
    for task in tqdm(asyncio.as_completed(tasks), total=len(tasks),
                     desc="Fetching feeds", disable=not progress):
        url, result = await task
        results[url] = result

    failed = sum(1 for r in results.values() if not r.ok)
    if failed:
        logger.info(f"Fetched {len(results) - failed}/{len(results)} feeds ({failed} failed)")
    return results
