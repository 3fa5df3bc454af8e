"""
Cross-source deduplication for Parallax.

Two articles are the same story when their URLs normalize to the same
host + path, or when their normalized titles are near-identical under a
character-overlap ratio. The ratio is deliberately crude; the 0.8 threshold
was tuned against exactly this metric.
"""
import logging
import re
from typing import Iterable, List, Set
from urllib.parse import urlsplit

from parallax.core.article import Article

logger = logging.getLogger(__name__)

TITLE_SIMILARITY_THRESHOLD = 0.8

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_url(url: str) -> str:
    """
    Reduce a URL to hostname (without www.) + path (without trailing slash).

    Scheme, query string and fragment are ignored. URLs that cannot be parsed
    as absolute come back unchanged.
    """
    raw = url or ""
    try:
        parts = urlsplit(raw.strip())
        host = parts.hostname
    except ValueError:
        return raw
    if not parts.scheme or not host:
        return raw
    if host.startswith("www."):
        host = host[4:]
    return host + parts.path.rstrip("/")


def normalize_title(title: str) -> str:
    """Lowercase a title and drop everything that is not a letter or digit."""
    return _NON_ALNUM.sub("", (title or "").lower())


def title_similarity(a: str, b: str) -> float:
    """
    Similarity of two normalized titles in [0, 1].

    If the shorter title is contained in the longer one, the ratio of their
    lengths. Otherwise the share of the longer title's characters that occur
    anywhere in the shorter title (order-insensitive).
    """
    if not a or not b:
        return 0.0
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if shorter in longer:
        return len(shorter) / len(longer)
    charset = set(shorter)
    overlap = sum(1 for ch in longer if ch in charset)
    return overlap / len(longer)


def _is_similar(title: str, seen_titles: Iterable[str], threshold: float) -> bool:
    return any(title_similarity(title, seen) > threshold for seen in seen_titles)


def deduplicate(existing: Iterable[Article], incoming: Iterable[Article],
                threshold: float = TITLE_SIMILARITY_THRESHOLD) -> List[Article]:
    """
    Return the articles of incoming that duplicate neither existing nor each other.

    Args:
        existing: Articles already accepted
        incoming: Candidate articles, in priority order
        threshold: Title similarity above which two articles are duplicates

    Returns:
        Unique incoming articles in their original order
    """
    seen_urls: Set[str] = set()
    seen_titles: List[str] = []
    for article in existing:
        seen_urls.add(normalize_url(article.link))
        title = normalize_title(article.title)
        if title:
            seen_titles.append(title)

    unique = []
    skipped = 0
    for article in incoming:
        url = normalize_url(article.link)
        title = normalize_title(article.title)
        if url in seen_urls or not title or _is_similar(title, seen_titles, threshold):
            skipped += 1
            continue
        unique.append(article)
        seen_urls.add(url)
        seen_titles.append(title)

    if skipped:
        logger.debug(f"Dropped {skipped} duplicate articles, kept {len(unique)}")
    return unique
