"""
Relevance scoring for Parallax.

Articles are scored against a TopicFingerprint. Every score is an integer
percentage in [0, 100]; the temporal bonus is an additive modifier instead.
Unknown dates are always treated as neutral.
"""
import enum
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from dateutil import parser as date_parser

from parallax.core.article import Article, Recency, TopicFingerprint
from parallax.utils.nlp import tokenize, unique_tokens

logger = logging.getLogger(__name__)

TOPIC_WEIGHT = 0.6
ENTITY_WEIGHT = 0.4
SOFT_PREFIX_LENGTH = 5
DEFAULT_WINDOW_DAYS = 7
TEMPORAL_BONUS = 10

_RELATIVE_AGE = re.compile(
    r"^\s*(\d+)\s*(minute|min|hour|hr|day|week|month|year)s?\s+ago\s*$", re.IGNORECASE
)
_UNIT_SECONDS = {
    "minute": 60, "min": 60,
    "hour": 3600, "hr": 3600,
    "day": 86400,
    "week": 7 * 86400,
    "month": 30 * 86400,
    "year": 365 * 86400,
}


class TemporalMode(str, enum.Enum):
    """How the seed date affects a run: additive bonus, hard filter, or not at all."""
    BONUS = "bonus"
    FILTER = "filter"
    OFF = "off"


class ScoringStrategy(str, enum.Enum):
    EXACT = "exact"
    SOFT = "soft"
    SEEDED = "seeded"


def round_percent(fraction: float) -> int:
    """Round a 0-1 fraction to a whole percentage, halves rounding up."""
    return int(math.floor(fraction * 100 + 0.5))


def _as_tokens(topic_tokens: Iterable[str]) -> List[str]:
    # keep order, drop repeats so a repeated token cannot count twice
    return list(dict.fromkeys(t for t in topic_tokens if t))


def _haystack_text(article: Article) -> str:
    return f"{article.title or ''} {article.description or ''}"


def _topic_fraction(article: Article, tokens: Sequence[str]) -> float:
    if not tokens:
        return 0.0
    haystack = set(tokenize(_haystack_text(article)))
    return sum(1 for t in tokens if t in haystack) / len(tokens)


def score_article(article: Article, topic_tokens: Iterable[str]) -> int:
    """
    Exact keyword score: share of topic tokens present in title + description.

    Args:
        article: Article to score
        topic_tokens: Fingerprint tokens

    Returns:
        0-100; 0 when there are no topic tokens
    """
    return round_percent(_topic_fraction(article, _as_tokens(topic_tokens)))


def score_article_with_seed(article: Article, topic_tokens: Iterable[str],
                            entities: Iterable[str]) -> int:
    """
    Entity-weighted score: 60% keyword overlap, 40% named-entity matches.

    Entities are matched as case-insensitive substrings so multi-word proper
    nouns survive tokenization. An empty entity list contributes nothing.

    Returns:
        0-100
    """
    topic_frac = _topic_fraction(article, _as_tokens(topic_tokens))
    entity_list = [e for e in entities if e]
    entity_frac = 0.0
    if entity_list:
        haystack = _haystack_text(article).lower()
        entity_frac = sum(1 for e in entity_list if e.lower() in haystack) / len(entity_list)
    return round_percent(topic_frac * TOPIC_WEIGHT + entity_frac * ENTITY_WEIGHT)


def _soft_match(topic_token: str, article_tokens: Iterable[str]) -> bool:
    if len(topic_token) < SOFT_PREFIX_LENGTH:
        return topic_token in article_tokens
    prefix = topic_token[:SOFT_PREFIX_LENGTH]
    return any(tok == topic_token or tok[:SOFT_PREFIX_LENGTH] == prefix for tok in article_tokens)


def score_article_soft(article: Article, topic_tokens: Iterable[str]) -> int:
    """
    Morphology-tolerant score: "sanction" also matches "sanctions" and
    "sanctioned" through a shared five-character prefix.

    Returns:
        0-100; 0 when there are no topic tokens
    """
    tokens = _as_tokens(topic_tokens)
    if not tokens:
        return 0
    article_tokens = set(tokenize(_haystack_text(article)))
    matches = sum(1 for t in tokens if _soft_match(t, article_tokens))
    return round_percent(matches / len(tokens))


def parse_pub_date(value: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse a feed or API publish date.

    Args:
        value: RFC 822, ISO 8601 or similar date string, or a relative age
            such as "3 hours ago"
        now: Reference time for relative ages (defaults to the current time)

    Returns:
        A timezone-aware datetime (naive values are taken as UTC), or None
    """
    if not value or not str(value).strip():
        return None
    text = str(value).strip()

    relative = _RELATIVE_AGE.match(text)
    if relative:
        amount, unit = int(relative.group(1)), relative.group(2).lower()
        reference = now or datetime.now(timezone.utc)
        return reference - timedelta(seconds=amount * _UNIT_SECONDS[unit])

    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def temporal_relevance_bonus(article: Article, seed_date: Optional[datetime],
                             window_days: float = DEFAULT_WINDOW_DAYS) -> int:
    """
    Additive date modifier relative to the seed date.

    Returns:
        +10 within window_days, 0 within twice that, -10 beyond; 0 whenever
        either date is missing or unparseable
    """
    seed = _as_aware(seed_date)
    published = parse_pub_date(article.pub_date) if article.pub_date else None
    if seed is None or published is None:
        return 0
    diff = abs((published - seed).total_seconds())
    window = window_days * 86400
    if diff <= window:
        return TEMPORAL_BONUS
    if diff <= 2 * window:
        return 0
    return -TEMPORAL_BONUS


def filter_by_temporal_proximity(articles: Sequence[Article], seed_date: Optional[datetime],
                                 window_days: float = DEFAULT_WINDOW_DAYS) -> List[Article]:
    """
    Keep articles published within window_days of the seed date.

    Articles with missing or unparseable dates are kept. Without a seed date
    the input comes back unchanged.
    """
    seed = _as_aware(seed_date)
    if seed is None:
        return list(articles)
    window = window_days * 86400
    kept = []
    for article in articles:
        published = parse_pub_date(article.pub_date)
        if published is None or abs((published - seed).total_seconds()) <= window:
            kept.append(article)
    return kept


def parse_recency(pub_date: Optional[str], now: Optional[datetime] = None) -> Recency:
    """
    Describe how long ago an article was published.

    Returns:
        Recency with a label such as "< 1h ago", "5h ago" or "3d ago";
        "unknown" with no age when the date cannot be parsed
    """
    reference = _as_aware(now) or datetime.now(timezone.utc)
    published = parse_pub_date(pub_date, now=reference)
    if published is None:
        return Recency("unknown")
    age = reference - published
    hours = math.floor(age.total_seconds() / 3600)
    if hours < 1:
        return Recency("< 1h ago", age)
    if hours < 24:
        return Recency(f"{hours}h ago", age)
    return Recency(f"{hours // 24}d ago", age)


def build_fingerprint(topic: str, entities: Iterable[str] = (),
                      seed_date: Optional[datetime] = None) -> TopicFingerprint:
    """
    Build the fingerprint a run scores against.

    Args:
        topic: The seed topic string
        entities: Named entities (e.g. from an LLM extraction step); their
            words also join the token set
        seed_date: Optional event date anchoring temporal relevance

    Returns:
        TopicFingerprint
    """
    entity_list = list(dict.fromkeys(e.strip() for e in entities if e and e.strip()))
    tokens = unique_tokens([topic, *entity_list])
    logger.debug(f"Fingerprint for '{topic}': {len(tokens)} tokens, {len(entity_list)} entities")
    return TopicFingerprint(tokens=tuple(tokens), entities=tuple(entity_list),
                            seed_date=_as_aware(seed_date))


def score_with_strategy(article: Article, fingerprint: TopicFingerprint,
                        strategy: ScoringStrategy = ScoringStrategy.SEEDED) -> int:
    """Dispatch to the scoring function a run was configured with."""
    strategy = ScoringStrategy(strategy)
    if strategy is ScoringStrategy.EXACT:
        return score_article(article, fingerprint.tokens)
    if strategy is ScoringStrategy.SOFT:
        return score_article_soft(article, fingerprint.tokens)
    return score_article_with_seed(article, fingerprint.tokens, fingerprint.entities)
