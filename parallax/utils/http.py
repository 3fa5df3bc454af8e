"""
HTTP politeness helpers for Parallax feed fetching.
"""
import asyncio
import logging
import time
from collections import defaultdict
from typing import Dict
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_SECOND = 1.0
MAX_BACKOFF_SECONDS = 60.0
FAILURE_THRESHOLD = 3


def domain_of(url: str) -> str:
    """Return the lowercase network location of a URL ('' when it has none)."""
    try:
        return (urlparse(url).netloc or "").lower()
    except ValueError:
        return ""


class RateLimiter:
    """
    Per-domain rate limiter with adaptive backoff.

    Several perspective columns often share a publisher (the same wire
    service feeds two lenses), so requests are spaced per domain rather than
    globally. Domains that keep failing are slowed down until they recover.
    """
    def __init__(self, requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND):
        """
        Initialize the RateLimiter.

        Args:
            requests_per_second: Allowed request rate per domain; 0 disables spacing
        """
        self.min_interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self.last_requests: Dict[str, float] = defaultdict(float)
        self.locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.failure_counts: Dict[str, int] = defaultdict(int)
        self.backoff_times: Dict[str, float] = defaultdict(lambda: self.min_interval)

    async def acquire(self, domain: str) -> None:
        """
        Wait until a request to the domain is allowed.

        Args:
            domain: The domain to rate limit
        """
        async with self.locks[domain]:
            elapsed = time.monotonic() - self.last_requests[domain]
            wait_time = max(self.min_interval, self.backoff_times[domain]) - elapsed
            if wait_time > 0 and self.last_requests[domain]:
                logger.debug(f"Rate limiting {domain}, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
            self.last_requests[domain] = time.monotonic()

    def report_success(self, domain: str) -> None:
        """Reset the failure count and ease the backoff for a domain."""
        self.failure_counts[domain] = 0
        if self.backoff_times[domain] > self.min_interval:
            self.backoff_times[domain] = max(self.min_interval, self.backoff_times[domain] * 0.8)

    def report_failure(self, domain: str) -> None:
        """Count a failure; past the threshold the domain backoff doubles."""
        self.failure_counts[domain] += 1
        if self.failure_counts[domain] >= FAILURE_THRESHOLD:
            current = max(self.backoff_times[domain], 1.0)
            self.backoff_times[domain] = min(MAX_BACKOFF_SECONDS, current * 2.0)
            logger.warning(
                f"Increased backoff for {domain} to {self.backoff_times[domain]:.2f}s "
                f"after {self.failure_counts[domain]} failures"
            )
