"""
Cross-column coverage detection for Parallax.
"""
from typing import Iterable, Mapping, Sequence

from parallax.core.article import Article
from parallax.utils.nlp import tokenize

MIN_SHARED_TOKENS = 2
LONG_TOKEN_LENGTH = 5


def cross_mention_count(article: Article, articles_by_column: Mapping[str, Sequence[Article]],
                        this_column_id: str, topic_tokens: Iterable[str]) -> int:
    """
    Count the other columns that cover the same story as an article.

    A column covers the story when one of its headlines shares at least two
    qualifying tokens with this article's headline. Qualifying tokens are topic
    tokens or words of five or more characters.

    Args:
        article: The article whose coverage is measured
        articles_by_column: Articles of every column in the lens
        this_column_id: Column the article belongs to (never counted)
        topic_tokens: Fingerprint tokens

    Returns:
        Number of other columns with coverage, at most len(columns) - 1
    """
    topic = set(topic_tokens)
    title_tokens = [
        t for t in tokenize(article.title)
        if t in topic or len(t) >= LONG_TOKEN_LENGTH
    ]
    if not title_tokens:
        return 0

    count = 0
    for column_id, others in articles_by_column.items():
        if column_id == this_column_id:
            continue
        for other in others:
            other_tokens = set(tokenize(other.title))
            shared = sum(1 for t in title_tokens if t in other_tokens)
            if shared >= MIN_SHARED_TOKENS:
                count += 1
                break
    return count
