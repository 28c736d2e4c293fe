"""
Book Matcher

Decides whether two book descriptors denote the same work:
- ISBN equality
- Exact match on normalized title and author
- Weighted edit-distance similarity above a threshold

Pure and stateless; no I/O.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, TypeVar

import Levenshtein


# Observed defaults. Changing them changes which existing books are flagged.
FUZZY_THRESHOLD = 0.85
TITLE_WEIGHT = 0.6
AUTHOR_WEIGHT = 0.4

# Slack for float error in the weighted sum at the threshold
_SCORE_EPSILON = 1e-9

_SUBTITLE = re.compile(r":.*$", re.DOTALL)
_WHITESPACE = re.compile(r"\s")
_DISALLOWED = re.compile(r"[^a-z0-9 ]")
_LEADING_ARTICLE = re.compile(r"^the\s+")

T = TypeVar("T")


class MatchType(str, Enum):
    """Why two books were judged the same, strongest first."""

    ISBN = "isbn"
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class Descriptor:
    """Minimal book identity compared by the resolver."""

    title: str
    author: str = ""
    isbn: Optional[str] = None

    @classmethod
    def of(cls, book) -> "Descriptor":
        """Descriptor of any object with title/author/isbn attributes."""
        return cls(
            title=book.title or "",
            author=getattr(book, "author", "") or "",
            isbn=getattr(book, "isbn", None),
        )


@dataclass(frozen=True)
class Match:
    """Result of a positive resolution."""

    match_type: MatchType
    similarity: float


def normalize_for_comparison(text: str) -> str:
    """
    Canonical form used for title and author comparison.

    Lowercases, drops a subtitle after the first colon, turns any
    whitespace into a space, keeps only [a-z0-9 ], trims, then drops any
    leading "the ".

    Example:
        normalize_for_comparison("The Great Gatsby") == "great gatsby"
    """
    text = (text or "").lower()
    text = _SUBTITLE.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    text = _DISALLOWED.sub("", text).strip()

    # Last step, so the result never starts with "the " again
    while _LEADING_ARTICLE.match(text):
        text = _LEADING_ARTICLE.sub("", text, count=1).strip()

    return text


def levenshtein(a: str, b: str) -> int:
    """Unit-cost edit distance (insert, delete, substitute)."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Similarity in [0, 1]; 1 means identical."""
    if a == b:
        return 1.0
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / max_len


class EntityResolver:
    """
    Duplicate detection between book descriptors.

    Rules are evaluated in priority order and the first that applies wins:
    1. Both ISBNs present and equal -> isbn, 1.0
    2. Normalized title and author equal -> exact, 1.0
    3. title_weight * title_sim + author_weight * author_sim >= threshold -> fuzzy

    Usage:
        resolver = EntityResolver()
        match = resolver.resolve(
            Descriptor("Dune", "Frank Herbert"),
            Descriptor("Dune: Deluxe Edition", "Frank Herbert"),
        )
        print(match.match_type)  # MatchType.EXACT
    """

    def __init__(
        self,
        threshold: float = FUZZY_THRESHOLD,
        title_weight: float = TITLE_WEIGHT,
        author_weight: float = AUTHOR_WEIGHT,
    ):
        """
        Initialize resolver.

        Args:
            threshold: Minimum combined score for a fuzzy match
            title_weight: Weight of title similarity
            author_weight: Weight of author similarity
        """
        self.threshold = threshold
        self.title_weight = title_weight
        self.author_weight = author_weight

    def combined_score(self, title_sim: float, author_sim: float) -> float:
        return self.title_weight * title_sim + self.author_weight * author_sim

    def resolve(self, a: Descriptor, b: Descriptor) -> Optional[Match]:
        """
        Compare two descriptors.

        Returns:
            Match, or None if they are different books
        """
        if a.isbn and b.isbn and a.isbn == b.isbn:
            return Match(MatchType.ISBN, 1.0)

        title_a = normalize_for_comparison(a.title)
        title_b = normalize_for_comparison(b.title)
        author_a = normalize_for_comparison(a.author)
        author_b = normalize_for_comparison(b.author)

        if title_a == title_b and author_a == author_b:
            return Match(MatchType.EXACT, 1.0)

        score = self.combined_score(
            similarity(title_a, title_b),
            similarity(author_a, author_b),
        )
        if score >= self.threshold - _SCORE_EPSILON:
            return Match(MatchType.FUZZY, score)

        return None

    def find_first_match(
        self,
        descriptor: Descriptor,
        books: Iterable[T],
    ) -> Optional[tuple[T, Match]]:
        """
        First book that matches the descriptor.

        Args:
            descriptor: Book being added
            books: Existing books, in the order they should be tried

        Returns:
            (book, match) or None
        """
        for book in books:
            match = self.resolve(descriptor, Descriptor.of(book))
            if match is not None:
                return book, match
        return None


_default_resolver = EntityResolver()


def resolve(a: Descriptor, b: Descriptor) -> Optional[Match]:
    """Resolve with the default threshold and weights."""
    return _default_resolver.resolve(a, b)
