"""
Tokenizer and preprocessor capabilities plugged into the vectorizers.

A tokenizer is any callable that turns a string into an ordered list of
tokens; a preprocessor is any callable that rewrites a string before
tokenization. The default tokenizer lowercases and splits on contiguous word
characters.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import Protocol

# =============================================================================
# Capability interfaces
# =============================================================================


class Tokenizer(Protocol):
    """Single-method capability: text -> ordered sequence of tokens."""

    def __call__(self, text: str) -> list[str]: ...


Preprocessor = Callable[[str], str]


# =============================================================================
# Default tokenizer
# =============================================================================

DEFAULT_TOKEN_PATTERN = r"\w+"


class RegexTokenizer:
    """
    Regex-based tokenizer.

    Args:
        pattern: Regular expression matching a single token.
        lowercase: Lowercase the text before matching.
    """

    def __init__(self, pattern: str = DEFAULT_TOKEN_PATTERN, lowercase: bool = True):
        self.pattern = pattern
        self.lowercase = lowercase
        self._regex = re.compile(pattern)

    def __call__(self, text: str) -> list[str]:
        if self.lowercase:
            text = text.lower()
        return self._regex.findall(text)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegexTokenizer):
            return NotImplemented
        return self.pattern == other.pattern and self.lowercase == other.lowercase

    def __hash__(self) -> int:
        return hash((self.pattern, self.lowercase))

    def __repr__(self) -> str:
        return f"RegexTokenizer(pattern={self.pattern!r}, lowercase={self.lowercase})"


_DEFAULT_TOKENIZER = RegexTokenizer()


def tokenize(text: str) -> list[str]:
    """Tokenizes the input text into a list of lowercase terms."""
    return _DEFAULT_TOKENIZER(text)


# =============================================================================
# Stop words
# =============================================================================

ENGLISH_STOPWORDS: frozenset[str] = frozenset([
    "a", "an", "and", "are", "as", "at", "be", "been", "but", "by", "can",
    "do", "for", "from", "had", "has", "have", "he", "her", "him", "his",
    "how", "i", "if", "in", "into", "is", "it", "its", "me", "my", "no",
    "not", "of", "on", "or", "our", "out", "s", "she", "so", "some", "such",
    "t", "than", "that", "the", "their", "them", "then", "there", "these",
    "they", "this", "to", "too", "us", "very", "was", "we", "were", "what",
    "when", "where", "which", "who", "will", "with", "would", "you", "your",
])

_BUILTIN_STOPWORDS: dict[str, frozenset[str]] = {"english": ENGLISH_STOPWORDS}


def resolve_stop_words(stop_words: str | Iterable[str] | None) -> frozenset[str]:
    """Turn a stop-word option into the set of tokens to drop."""
    if stop_words is None:
        return frozenset()
    if isinstance(stop_words, str):
        try:
            return _BUILTIN_STOPWORDS[stop_words]
        except KeyError:
            raise ValueError(f"Unknown stop word list: {stop_words!r}") from None
    return frozenset(stop_words)


__all__ = [
    "Tokenizer",
    "Preprocessor",
    "DEFAULT_TOKEN_PATTERN",
    "tokenize",
    "RegexTokenizer",
    "ENGLISH_STOPWORDS",
    "resolve_stop_words",
]
