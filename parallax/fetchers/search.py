"""
Search-provider query URLs for Parallax.

Pure string templating plus the auth headers some providers need; nothing
here touches the network.
"""
import logging
import os
from typing import Callable, Dict
from urllib.parse import quote_plus, urlencode

from parallax.config import get_config

logger = logging.getLogger(__name__)


def _google_news(query: str, language: str, country: str) -> str:
    lang = language.lower()
    region = country.upper()
    params = urlencode({
        "q": query,
        "hl": f"{lang}-{region}",
        "gl": region,
        "ceid": f"{region}:{lang}",
    }, quote_via=quote_plus)
    return f"https://news.google.com/rss/search?{params}"


def _brave(query: str, language: str, country: str) -> str:
    params = urlencode({
        "q": query,
        "search_lang": language.lower(),
        "country": country.lower(),
        "count": 20,
    }, quote_via=quote_plus)
    return f"https://api.search.brave.com/res/v1/news/search?{params}"


def _newsapi(query: str, language: str, country: str) -> str:
    # the everything endpoint has no country filter
    params = urlencode({
        "q": query,
        "language": language.lower(),
        "sortBy": "publishedAt",
        "pageSize": 20,
    }, quote_via=quote_plus)
    return f"https://newsapi.org/v2/everything?{params}"


PROVIDERS: Dict[str, Callable[[str, str, str], str]] = {
    "google_news": _google_news,
    "brave": _brave,
    "newsapi": _newsapi,
}


def build_query_url(query: str, language: str = "en", country: str = "us",
                    provider: str = "google_news") -> str:
    """
    Build the search URL for a query.

    Args:
        query: Search terms
        language: Two-letter language code
        country: Two-letter country code
        provider: One of PROVIDERS

    Returns:
        The provider URL

    Raises:
        ValueError: If the provider is unknown
    """
    try:
        builder = PROVIDERS[provider]
    except KeyError:
        raise ValueError(f"Unknown search provider '{provider}'; available: {', '.join(PROVIDERS)}") from None
    return builder(" ".join((query or "").split()), language or "en", country or "us")


# provider -> (host, header, config key naming the environment variable)
_AUTH = {
    "brave": ("api.search.brave.com", "X-Subscription-Token", "search.brave_key_env"),
    "newsapi": ("newsapi.org", "X-Api-Key", "search.newsapi_key_env"),
}


def provider_headers(provider: str) -> Dict[str, Dict[str, str]]:
    """
    Per-domain auth headers for a provider, for FeedFetcher(domain_headers=...).

    Returns an empty dict for keyless providers or when the key is not set.
    """
    if provider not in _AUTH:
        return {}
    host, header, env_key = _AUTH[provider]
    api_key = os.getenv(get_config(env_key, ""))
    if not api_key:
        logger.warning(f"No API key for search provider '{provider}'; requests will likely be rejected")
        return {}
    return {host: {header: api_key}}
