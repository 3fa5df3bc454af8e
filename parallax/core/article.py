"""
Article data model for Parallax.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Tuple


@dataclass(frozen=True)
class Article:
    """
    One canonical news item, whatever feed or search API it came from.

    Dedup identity (normalized URL + normalized title) is derived on demand,
    not stored here.
    """
    title: str
    link: str
    description: str = ""
    pub_date: str = ""  # raw, in the source's own format


@dataclass(frozen=True)
class TopicFingerprint:
    """
    Token/entity/date profile every article of a run is scored against.
    """
    tokens: Tuple[str, ...] = ()
    entities: Tuple[str, ...] = ()  # surface forms, case preserved
    seed_date: Optional[datetime] = None


@dataclass(frozen=True)
class Recency:
    """Human-readable age of an article."""
    label: str
    age: Optional[timedelta] = None


@dataclass
class ScoredArticle:
    """
    An article ranked within its column.
    """
    article: Article
    column_id: str
    score: int
    temporal_bonus: int = 0
    cross_mentions: int = 0
    recency: Recency = field(default_factory=lambda: Recency("unknown"))

    @property
    def rank_score(self) -> int:
        return self.score + self.temporal_bonus

    def to_dict(self) -> dict:
        return {
            "title": self.article.title,
            "link": self.article.link,
            "description": self.article.description,
            "pubDate": self.article.pub_date,
            "column": self.column_id,
            "score": self.score,
            "temporalBonus": self.temporal_bonus,
            "rankScore": self.rank_score,
            "crossMentions": self.cross_mentions,
            "recency": self.recency.label,
        }
