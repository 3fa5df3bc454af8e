import asyncio
import os
import unittest
from unittest import mock
from urllib.parse import parse_qs, urlsplit

import aiohttp

from parallax.fetchers.feeds import FeedFetcher, FetchResult, _is_permanent, fetch_all
from parallax.fetchers.search import build_query_url, provider_headers
from parallax.utils.http import RateLimiter, domain_of


class TestBuildQueryUrl(unittest.TestCase):
    def test_google_news_default(self):
        url = build_query_url("  climate   policy ")
        parts = urlsplit(url)
        self.assertEqual(parts.netloc, "news.google.com")
        self.assertEqual(parse_qs(parts.query), {
            "q": ["climate policy"], "hl": ["en-US"], "gl": ["US"], "ceid": ["US:en"],
        })

    def test_brave_and_newsapi(self):
        brave = parse_qs(urlsplit(build_query_url("a&b", "de", "DE", "brave")).query)
        self.assertEqual(brave["q"], ["a&b"])
        self.assertEqual(brave["country"], ["de"])
        newsapi = build_query_url("x", provider="newsapi")
        self.assertTrue(newsapi.startswith("https://newsapi.org/v2/everything?"))

    def test_unknown_provider(self):
        with self.assertRaises(ValueError):
            build_query_url("x", provider="altavista")


class TestProviderHeaders(unittest.TestCase):
    def test_keyless_provider(self):
        self.assertEqual(provider_headers("google_news"), {})

    def test_key_sent_only_to_provider_host(self):
        with mock.patch.dict(os.environ, {"BRAVE_API_KEY": "secret"}):
            self.assertEqual(provider_headers("brave"),
                             {"api.search.brave.com": {"X-Subscription-Token": "secret"}})

    def test_missing_key_warns(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertLogs("parallax.fetchers.search", level="WARNING"):
                self.assertEqual(provider_headers("newsapi"), {})


class TestRateLimiter(unittest.IsolatedAsyncioTestCase):
    async def test_first_request_does_not_wait(self):
        limiter = RateLimiter(0.001)
        await asyncio.wait_for(limiter.acquire("example.com"), timeout=1)

    def test_backoff_grows_after_repeated_failures(self):
        limiter = RateLimiter(1.0)
        for _ in range(3):
            limiter.report_failure("slow.test")
        self.assertEqual(limiter.backoff_times["slow.test"], 2.0)
        limiter.report_success("slow.test")
        self.assertAlmostEqual(limiter.backoff_times["slow.test"], 1.6)
        self.assertEqual(limiter.failure_counts["slow.test"], 0)

    def test_domain_of(self):
        self.assertEqual(domain_of("https://WWW.Example.com/a"), "www.example.com")
        self.assertEqual(domain_of("nope"), "")


class TestPermanentErrors(unittest.TestCase):
    def error(self, status):
        return aiohttp.ClientResponseError(mock.Mock(), (), status=status)

    def test_classification(self):
        self.assertTrue(_is_permanent(self.error(404)))
        self.assertFalse(_is_permanent(self.error(429)))
        self.assertFalse(_is_permanent(self.error(503)))
        self.assertFalse(_is_permanent(asyncio.TimeoutError()))


class TestFetchAll(unittest.IsolatedAsyncioTestCase):
    async def test_keyed_by_url_with_concurrency_limit(self):
        active = 0
        peak = 0
        calls = []

        async def fetch(url):
            nonlocal active, peak
            calls.append(url)
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            if url.endswith("bad"):
                raise RuntimeError("boom")
            return FetchResult(url, True, "<rss/>")

        urls = ["https://a.test/1", "https://a.test/2", "https://a.test/1", "https://b.test/bad"]
        results = await fetch_all(urls, fetch, max_concurrent=2)
        self.assertEqual(sorted(results), ["https://a.test/1", "https://a.test/2", "https://b.test/bad"])
        self.assertEqual(len(calls), 3)
        self.assertLessEqual(peak, 2)
        self.assertFalse(results["https://b.test/bad"].ok)
        self.assertEqual(results["https://b.test/bad"].error, "boom")

    async def test_invalid_url_is_a_failure_not_an_exception(self):
        async with FeedFetcher(timeout=1, requests_per_second=0) as fetcher:
            result = await fetcher.fetch("not a url")
        self.assertFalse(result.ok)
        self.assertEqual(result.url, "not a url")


if __name__ == "__main__":
    unittest.main()
