"""
Lens and column definitions for Parallax.

A lens groups perspective columns; each column is backed by an ordered list of
feed URLs (ordered by preference, more feeds means more articles).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Column:
    id: str
    label: str
    color: str
    feeds: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Column":
        return cls(
            id=str(data["id"]),
            label=str(data.get("label") or data["id"]),
            color=str(data.get("color") or "#94a3b8"),
            feeds=tuple(str(url) for url in data.get("feeds") or ()),
        )


@dataclass(frozen=True)
class Lens:
    id: str
    label: str
    columns: Tuple[Column, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, lens_id: str, data: Mapping[str, Any]) -> "Lens":
        return cls(
            id=lens_id,
            label=str(data.get("label") or lens_id),
            columns=tuple(Column.from_dict(col) for col in data.get("columns") or ()),
        )

    def column(self, column_id: str) -> Optional[Column]:
        for col in self.columns:
            if col.id == column_id:
                return col
        return None


LENS_CONFIGS: Dict[str, Dict[str, Any]] = {
    "political": {
        "label": "Political Spectrum",
        "columns": [
            {"id": "left", "label": "Left", "color": "#3b82f6", "feeds": [
                "https://www.theguardian.com/world/rss",
                "https://www.motherjones.com/feed/",
            ]},
            {"id": "center-left", "label": "Center-Left", "color": "#6792d7", "feeds": [
                "https://feeds.npr.org/1001/rss.xml",
                "https://feeds.washingtonpost.com/rss/world",
            ]},
            {"id": "center", "label": "Center", "color": "#94a3b8", "feeds": [
                "https://feeds.bbci.co.uk/news/world/rss.xml",
                "https://feeds.reuters.com/reuters/topNews",
            ]},
            {"id": "center-right", "label": "Ctr-Right", "color": "#c1737e", "feeds": [
                "https://www.economist.com/sections/briefing/rss.xml",
                "https://feeds.a.dj.com/rss/RSSWorldNews.xml",
            ]},
            {"id": "right", "label": "Right", "color": "#ef4444", "feeds": [
                "https://moxie.foxnews.com/google-publisher/world.xml",
                "https://www.nationalreview.com/feed/",
            ]},
        ],
    },
    "geographic": {
        "label": "Geographic",
        "columns": [
            {"id": "na", "label": "N. America", "color": "#3b82f6", "feeds": [
                "https://feeds.npr.org/1001/rss.xml",
                "https://feeds.a.dj.com/rss/RSSWorldNews.xml",
            ]},
            {"id": "eu", "label": "Europe", "color": "#8b5cf6", "feeds": [
                "https://feeds.bbci.co.uk/news/world/rss.xml",
                "https://www.theguardian.com/world/rss",
            ]},
            {"id": "ap", "label": "Asia-Pacific", "color": "#06b6d4", "feeds": [
                "https://www.scmp.com/rss/91/feed",
                "https://www3.nhk.or.jp/nhkworld/en/news/rss/",
            ]},
            {"id": "me", "label": "Mid East & Africa", "color": "#f59e0b", "feeds": [
                "https://www.aljazeera.com/xml/rss/all.xml",
            ]},
            {"id": "intl", "label": "Global / Intl", "color": "#10b981", "feeds": [
                "https://news.un.org/feed/subscribe/en/news/all/rss.xml",
                "https://feeds.reuters.com/reuters/topNews",
            ]},
        ],
    },
    "domain": {
        "label": "Domain",
        "columns": [
            {"id": "science", "label": "Science", "color": "#06b6d4", "feeds": [
                "https://www.nature.com/news.rss",
                "https://feeds.sciencedaily.com/sciencedaily/top_news",
            ]},
            {"id": "tech", "label": "Tech", "color": "#8b5cf6", "feeds": [
                "https://feeds.wired.com/wired/index",
                "https://feeds.arstechnica.com/arstechnica/index",
            ]},
            {"id": "policy", "label": "Policy / Gov", "color": "#f59e0b", "feeds": [
                "https://news.un.org/feed/subscribe/en/news/all/rss.xml",
            ]},
            {"id": "finance", "label": "Finance", "color": "#10b981", "feeds": [
                "https://feeds.a.dj.com/rss/RSSMarketsMain.xml",
                "https://feeds.reuters.com/reuters/businessNews",
            ]},
            {"id": "culture", "label": "Culture", "color": "#ec4899", "feeds": [
                "https://www.theatlantic.com/feed/all/",
                "https://www.newyorker.com/feed/everything",
            ]},
        ],
    },
    # user-defined at runtime
    "custom": {
        "label": "Custom",
        "columns": [],
    },
}


def load_lenses(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Lens]:
    """
    Build the lens table from the built-in definitions plus configured ones.

    Args:
        overrides: Mapping of lens-id to {label, columns}; an entry replaces the
            built-in lens of the same id

    Returns:
        Dict mapping lens ids to Lens objects, built-ins first
    """
    merged: Dict[str, Mapping[str, Any]] = dict(LENS_CONFIGS)
    for lens_id, data in (overrides or {}).items():
        if isinstance(data, Mapping):
            merged[lens_id] = data
    return {lens_id: Lens.from_dict(lens_id, data) for lens_id, data in merged.items()}


def get_lens(lens_id: str, overrides: Optional[Mapping[str, Any]] = None) -> Lens:
    """
    Look up one lens.

    Raises:
        KeyError: If no lens with that id exists
    """
    lenses = load_lenses(overrides)
    if lens_id not in lenses:
        raise KeyError(f"Unknown lens '{lens_id}'; available: {', '.join(sorted(lenses))}")
    return lenses[lens_id]


def custom_lens(columns: List[Mapping[str, Any]], label: str = "Custom") -> Lens:
    """Build a user-defined lens from column dicts."""
    return Lens.from_dict("custom", {"label": label, "columns": columns})
