"""
Text utilities for Parallax.
"""
import re
from typing import Iterable, List, Optional

# Filler words common in headlines plus short function words
STOPWORDS = frozenset([
    "the", "and", "for", "that", "this", "with", "from", "have", "been", "they",
    "will", "more", "also", "about", "into", "which", "their", "after", "when",
    "were", "what", "said", "says", "year", "over", "than", "just", "some",
    "such", "would", "could", "then", "these", "those", "there", "where",
    "while", "other", "first", "last", "news", "report", "amid", "week",
    "days", "time", "make", "made",
    "are", "was", "but", "not", "you", "all", "any", "can", "had", "has",
    "her", "his", "its", "our", "out", "who", "how", "why", "she", "him",
    "did", "does", "get", "got", "may", "per", "via", "yet", "too", "off",
])

MIN_TOKEN_LENGTH = 3

_NON_WORD = re.compile(r"[^a-z0-9\s]")


def tokenize(text: Optional[str]) -> List[str]:
    """
    Split free text into scoring tokens.

    Args:
        text: Text to tokenize; None and empty strings are allowed

    Returns:
        Lowercase tokens of at least three characters that are not stopwords,
        in input order (duplicates kept)
    """
    if not text:
        return []
    cleaned = _NON_WORD.sub(" ", str(text).lower())
    return [
        word for word in cleaned.split()
        if len(word) >= MIN_TOKEN_LENGTH and word not in STOPWORDS
    ]


def unique_tokens(texts: Iterable[Optional[str]]) -> List[str]:
    """Tokenize several texts into one ordered list without repeats."""
    seen = set()
    tokens = []
    for text in texts:
        for token in tokenize(text):
            if token not in seen:
                seen.add(token)
                tokens.append(token)
    return tokens
