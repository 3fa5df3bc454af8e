"""
Lens pipeline for Parallax.

raw feed bodies -> normalized articles -> per-column dedup, temporal
handling and scoring -> cross-column coverage -> ranked columns.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from parallax.config import get_config
from parallax.core.article import Article, ScoredArticle, TopicFingerprint
from parallax.core.coverage import cross_mention_count
from parallax.core.dedup import TITLE_SIMILARITY_THRESHOLD, deduplicate
from parallax.core.lenses import Lens
from parallax.core.normalizer import normalize_payload
from parallax.core.scoring import (
    ScoringStrategy,
    TemporalMode,
    filter_by_temporal_proximity,
    parse_recency,
    score_with_strategy,
    temporal_relevance_bonus,
)
from parallax.fetchers.feeds import Fetch, FetchResult, fetch_all

logger = logging.getLogger(__name__)


@dataclass
class RankingOptions:
    """Caller-selected scoring behaviour for one run."""
    strategy: ScoringStrategy = ScoringStrategy.SEEDED
    temporal_mode: TemporalMode = TemporalMode.BONUS
    window_days: float = 7
    min_score: int = 0
    title_threshold: float = TITLE_SIMILARITY_THRESHOLD

    def __post_init__(self):
        # accept plain strings from config and CLI; unknown values raise ValueError
        self.strategy = ScoringStrategy(self.strategy)
        self.temporal_mode = TemporalMode(self.temporal_mode)

    @classmethod
    def from_config(cls) -> "RankingOptions":
        return cls(
            strategy=ScoringStrategy(get_config("scoring.strategy", "seeded")),
            temporal_mode=TemporalMode(get_config("scoring.temporal_mode", "bonus")),
            window_days=float(get_config("scoring.window_days", 7)),
            min_score=int(get_config("scoring.min_score", 0)),
            title_threshold=float(get_config("dedup.title_threshold", TITLE_SIMILARITY_THRESHOLD)),
        )


@dataclass
class LensRunResult:
    lens: Lens
    fingerprint: TopicFingerprint
    columns: Dict[str, List[ScoredArticle]] = field(default_factory=dict)
    failures: List[FetchResult] = field(default_factory=list)

    @property
    def article_count(self) -> int:
        return sum(len(items) for items in self.columns.values())

    def to_dict(self) -> dict:
        return {
            "lens": self.lens.id,
            "label": self.lens.label,
            "topic": {
                "tokens": list(self.fingerprint.tokens),
                "entities": list(self.fingerprint.entities),
                "seedDate": self.fingerprint.seed_date.isoformat() if self.fingerprint.seed_date else None,
            },
            "columns": [
                {
                    "id": col.id,
                    "label": col.label,
                    "color": col.color,
                    "articles": [item.to_dict() for item in self.columns.get(col.id, [])],
                }
                for col in self.lens.columns
            ],
            "failures": [{"url": f.url, "error": f.error} for f in self.failures],
        }


def prepare_column(articles: Sequence[Article], fingerprint: TopicFingerprint,
                   options: RankingOptions) -> List[Article]:
    """Deduplicate a column's articles and apply the hard date filter if selected."""
    unique = deduplicate([], articles, threshold=options.title_threshold)
    if options.temporal_mode is TemporalMode.FILTER:
        unique = filter_by_temporal_proximity(unique, fingerprint.seed_date, options.window_days)
    return unique


def rank_columns(articles_by_column: Mapping[str, Sequence[Article]],
                 fingerprint: TopicFingerprint,
                 options: Optional[RankingOptions] = None,
                 now: Optional[datetime] = None) -> Dict[str, List[ScoredArticle]]:
    """
    Score, deduplicate and rank the articles of every column.

    Args:
        articles_by_column: Normalized articles per column id, in feed order
        fingerprint: The run's topic fingerprint
        options: Scoring options (defaults from configuration)
        now: Reference time for recency labels

    Returns:
        Dict mapping column ids to articles sorted by descending rank score
    """
    options = options or RankingOptions.from_config()
    prepared = {
        column_id: prepare_column(articles, fingerprint, options)
        for column_id, articles in articles_by_column.items()
    }

    ranked: Dict[str, List[ScoredArticle]] = {}
    for column_id, articles in prepared.items():
        scored = []
        for article in articles:
            score = score_with_strategy(article, fingerprint, options.strategy)
            if score < options.min_score:
                continue
            bonus = 0
            if options.temporal_mode is TemporalMode.BONUS:
                bonus = temporal_relevance_bonus(article, fingerprint.seed_date, options.window_days)
            scored.append(ScoredArticle(
                article=article,
                column_id=column_id,
                score=score,
                temporal_bonus=bonus,
                cross_mentions=cross_mention_count(article, prepared, column_id, fingerprint.tokens),
                recency=parse_recency(article.pub_date, now=now),
            ))
        scored.sort(key=lambda item: item.rank_score, reverse=True)
        ranked[column_id] = scored
        logger.debug(f"Column {column_id}: {len(scored)} of {len(articles)} articles ranked")
    return ranked


class LensPipeline:
    """
    Runs one lens for a topic: fetches every column's feeds, normalizes the
    bodies and ranks the results.
    """
    def __init__(self, fetch: Fetch, options: Optional[RankingOptions] = None,
                 max_concurrent: Optional[int] = None, progress: bool = False):
        """
        Initialize the LensPipeline.

        Args:
            fetch: Async callable url -> FetchResult
            options: Scoring options (defaults from configuration)
            max_concurrent: Concurrent fetch limit
            progress: Show a progress bar while fetching
        """
        self.fetch = fetch
        self.options = options or RankingOptions.from_config()
        self.max_concurrent = max_concurrent
        self.progress = progress

    async def collect(self, lens: Lens, extra_urls: Optional[Mapping[str, Iterable[str]]] = None
                      ) -> Tuple[Dict[str, List[Article]], List[FetchResult]]:
        """
        Fetch and normalize every feed of the lens.

        Returns:
            Articles grouped by column id, and the fetches that failed
        """
        urls_by_column = {
            col.id: list(col.feeds) + list((extra_urls or {}).get(col.id, ()))
            for col in lens.columns
        }
        all_urls = [url for urls in urls_by_column.values() for url in urls]
        results = await fetch_all(all_urls, self.fetch,
                                  max_concurrent=self.max_concurrent, progress=self.progress)

        articles_by_column: Dict[str, List[Article]] = {}
        for column_id, urls in urls_by_column.items():
            articles: List[Article] = []
            for url in urls:
                result = results.get(url)
                if result is None or not result.ok:
                    continue
                items = normalize_payload(result.body, result.content_type)
                if not items:
                    logger.info(f"No articles in {url}")
                articles.extend(items)
            articles_by_column[column_id] = articles
        return articles_by_column, [r for r in results.values() if not r.ok]

    async def run(self, lens: Lens, fingerprint: TopicFingerprint,
                  extra_urls: Optional[Mapping[str, Iterable[str]]] = None,
                  now: Optional[datetime] = None) -> LensRunResult:
        """
        Run the lens.

        Args:
            lens: Lens to run
            fingerprint: Topic fingerprint
            extra_urls: Additional URLs per column id (e.g. search query URLs)
            now: Reference time for recency labels

        Returns:
            LensRunResult with ranked columns and the failed fetches
        """
        articles_by_column, failures = await self.collect(lens, extra_urls)
        columns = rank_columns(articles_by_column, fingerprint, self.options, now=now)
        result = LensRunResult(lens=lens, fingerprint=fingerprint, columns=columns, failures=failures)
        logger.info(
            f"Lens '{lens.id}': {result.article_count} articles across "
            f"{len(lens.columns)} columns, {len(failures)} failed fetches"
        )
        return result
