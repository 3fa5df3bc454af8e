"""
Feed and search-API normalization for Parallax.

Every source shape (RSS 2.0, Atom, Brave news search JSON, NewsAPI JSON)
ends up as a list of Article. Parsing fails closed: bad input gives an
empty list and a log line, never an exception.
"""
import json
import logging
import re
import warnings
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

from bs4 import BeautifulSoup

from parallax.core.article import Article

logger = logging.getLogger(__name__)

MAX_ITEMS_PER_FEED = 20
MAX_DESCRIPTION_LENGTH = 300

_WHITESPACE = re.compile(r"\s+")


def strip_html(text: Optional[str]) -> str:
    """
    Remove HTML tags and entities, collapsing whitespace.

    Args:
        text: Text that may contain markup

    Returns:
        Plain text, trimmed
    """
    if not text:
        return ""
    if "<" in text or "&" in text:
        with warnings.catch_warnings():
            # Plain strings that look like URLs or paths trigger bs4 warnings
            warnings.simplefilter("ignore")
            text = BeautifulSoup(text, "html.parser").get_text(separator=" ")
    return _WHITESPACE.sub(" ", text).strip()


def clean_description(text: Optional[str]) -> str:
    return strip_html(text)[:MAX_DESCRIPTION_LENGTH]


def _local_name(tag: Any) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _text(element: Optional[ET.Element]) -> str:
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def _children(element: ET.Element, *names: str) -> List[ET.Element]:
    """Direct children whose local name is one of names, in document order."""
    return [child for child in element if _local_name(child.tag) in names]


def _first_text(element: ET.Element, *names: str) -> str:
    for child in _children(element, *names):
        value = _text(child)
        if value:
            return value
    return ""


def _rss_item(item: ET.Element) -> Optional[Article]:
    link = _first_text(item, "link") or _first_text(item, "guid")
    if not link.startswith("http"):
        return None
    return Article(
        title=_first_text(item, "title"),
        link=link,
        description=clean_description(_first_text(item, "description", "encoded")),
        pub_date=_first_text(item, "pubDate") or _first_text(item, "date"),
    )


def _atom_link(entry: ET.Element) -> str:
    links = [el for el in _children(entry, "link") if el.get("href")]
    for el in links:
        if el.get("rel") in (None, "", "alternate"):
            return el.get("href", "").strip()
    return links[0].get("href", "").strip() if links else ""


def _atom_entry(entry: ET.Element) -> Optional[Article]:
    link = _atom_link(entry)
    if not link.startswith("http"):
        return None
    return Article(
        title=_first_text(entry, "title"),
        link=link,
        description=clean_description(_first_text(entry, "summary", "content")),
        pub_date=_first_text(entry, "published", "updated"),
    )


def parse_feed_items(raw_xml: Union[str, bytes, None]) -> List[Article]:
    """
    Parse RSS 2.0 or Atom XML into articles.

    RSS <item> elements are used when present; Atom <entry> elements only when
    the document has no RSS items. Items without an http(s) link are dropped.

    Args:
        raw_xml: The feed document

    Returns:
        Up to MAX_ITEMS_PER_FEED articles in feed order; [] for malformed XML
    """
    if not raw_xml:
        return []
    # an XML declaration must be the very first thing in the document
    raw_xml = raw_xml.strip()
    try:
        root = ET.fromstring(raw_xml)
    except (ET.ParseError, ValueError) as e:
        logger.warning(f"Could not parse feed XML: {e}")
        return []

    items = []
    for element in root.iter():
        if _local_name(element.tag) == "item":
            article = _rss_item(element)
            if article:
                items.append(article)

    if not items:
        for element in root.iter():
            if _local_name(element.tag) == "entry":
                article = _atom_entry(element)
                if article:
                    items.append(article)

    return items[:MAX_ITEMS_PER_FEED]


def _field(record: Mapping[str, Any], key: str) -> str:
    value = record.get(key)
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class BraveResult:
    """One Brave news-search result after defaulting."""
    title: str = ""
    url: str = ""
    description: str = ""
    age: str = ""

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "BraveResult":
        return cls(
            title=strip_html(_field(record, "title")),
            url=_field(record, "url"),
            description=_field(record, "description"),
            age=_field(record, "age") or _field(record, "page_age"),
        )

    def to_article(self) -> Article:
        return Article(self.title, self.url, clean_description(self.description), self.age)


@dataclass(frozen=True)
class NewsApiResult:
    """One NewsAPI article after defaulting."""
    title: str = ""
    url: str = ""
    description: str = ""
    published_at: str = ""

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "NewsApiResult":
        return cls(
            title=_field(record, "title"),
            url=_field(record, "url"),
            description=_field(record, "description"),
            published_at=_field(record, "publishedAt"),
        )

    def to_article(self) -> Article:
        return Article(self.title, self.url, clean_description(self.description), self.published_at)


def _records(values: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(values, list):
        return []
    return [value for value in values if isinstance(value, Mapping)]


def _collect(records: Iterable[Any]) -> List[Article]:
    articles = []
    for record in records:
        article = record.to_article()
        if article.link.startswith("http"):
            articles.append(article)
        if len(articles) >= MAX_ITEMS_PER_FEED:
            break
    return articles


def normalize_brave_results(payload: Any) -> List[Article]:
    """
    Normalize a Brave search response ({"results": [...]} from the news
    endpoint, or {"web": {"results": [...]}} from web search).
    """
    if not isinstance(payload, Mapping):
        return []
    results = payload.get("results")
    if results is None:
        for section in ("news", "web"):
            nested = payload.get(section)
            if isinstance(nested, Mapping) and isinstance(nested.get("results"), list):
                results = nested["results"]
                break
    return _collect(BraveResult.from_dict(r) for r in _records(results))


def normalize_newsapi_results(payload: Any) -> List[Article]:
    """Normalize a NewsAPI response ({"articles": [...]})."""
    if not isinstance(payload, Mapping):
        return []
    return _collect(NewsApiResult.from_dict(r) for r in _records(payload.get("articles")))


def normalize_json_payload(payload: Any) -> List[Article]:
    if isinstance(payload, Mapping) and "articles" in payload:
        return normalize_newsapi_results(payload)
    return normalize_brave_results(payload)


def normalize_payload(body: Union[str, bytes, Mapping[str, Any], None],
                      content_type: str = "") -> List[Article]:
    """
    Turn a fetched body into articles, whatever its format.

    Args:
        body: Raw feed text/bytes, or an already-decoded JSON object
        content_type: The response content type, if known

    Returns:
        Normalized articles; [] when the body cannot be understood
    """
    if body is None:
        return []
    if isinstance(body, Mapping):
        return normalize_json_payload(body)

    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    else:
        text = str(body)
    stripped = text.lstrip("\ufeff \t\r\n")
    if not stripped:
        return []

    looks_json = stripped[0] in "{["
    if "json" in (content_type or "").lower() or looks_json:
        try:
            return normalize_json_payload(json.loads(stripped))
        except (ValueError, RecursionError) as e:
            if not stripped.startswith("<"):
                logger.warning(f"Could not parse search API JSON: {e}")
                return []
    # bytes stay undecoded; ElementTree reads the declared encoding
    if isinstance(body, bytes):
        return parse_feed_items(body)
    return parse_feed_items(stripped)
