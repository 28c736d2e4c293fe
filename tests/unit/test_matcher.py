"""
Unit tests for the book matcher.
"""

import pytest

from booktender.resolution import matcher
from booktender.resolution.matcher import (
    Descriptor,
    EntityResolver,
    MatchType,
    levenshtein,
    normalize_for_comparison,
    resolve,
    similarity,
)


class TestNormalizeForComparison:
    """Tests for title/author normalization."""

    def test_strips_punctuation_and_keeps_spaces(self):
        """Punctuation disappears; the gap it leaves stays."""
        result = normalize_for_comparison("Harry Potter - The Sorcerer's Stone")

        assert result == "harry potter  the sorcerers stone"

    def test_drops_leading_article(self):
        assert normalize_for_comparison("The Great Gatsby") == "great gatsby"

    def test_drops_subtitle(self):
        assert normalize_for_comparison("Dune: Deluxe Edition") == "dune"

    def test_article_only_at_word_boundary(self):
        assert normalize_for_comparison("Theology Today") == "theology today"

    def test_repeated_articles(self):
        assert normalize_for_comparison("The The Band") == "band"

    def test_surrounding_whitespace(self):
        assert normalize_for_comparison("  The   Hobbit ") == "hobbit"

    @pytest.mark.parametrize("text", ["The\tHobbit", "The\nHobbit", "The\r\nHobbit"])
    def test_article_followed_by_any_whitespace(self, text):
        assert normalize_for_comparison(text) == "hobbit"

    def test_empty_and_none(self):
        assert normalize_for_comparison("") == ""
        assert normalize_for_comparison(None) == ""

    @pytest.mark.parametrize("text", [
        "The !the x",
        "The:Subtitle",
        "the the: x",
        "  THE  The  Road  ",
        "The\nthe",
        "1984",
        "F. Scott Fitzgerald",
        "Ünïcödé Tïtle",
    ])
    def test_idempotent(self, text):
        """Normalizing twice changes nothing."""
        once = normalize_for_comparison(text)

        assert normalize_for_comparison(once) == once


class TestLevenshtein:
    """Tests for edit distance."""

    def test_classic_example(self):
        assert levenshtein("kitten", "sitting") == 3

    def test_identity(self):
        assert levenshtein("dune", "dune") == 0

    def test_against_empty(self):
        assert levenshtein("", "abc") == 3
        assert levenshtein("abc", "") == 3

    def test_symmetric(self):
        assert levenshtein("hobbit", "hobit") == levenshtein("hobit", "hobbit")

    def test_triangle_inequality(self):
        words = ["dune", "dunes", "june", "tune up", ""]
        for a in words:
            for b in words:
                for c in words:
                    assert levenshtein(a, c) <= levenshtein(a, b) + levenshtein(b, c)


class TestSimilarity:
    """Tests for normalized similarity."""

    def test_identical(self):
        assert similarity("dune", "dune") == 1.0

    def test_both_empty(self):
        assert similarity("", "") == 1.0

    def test_one_empty(self):
        assert similarity("", "dune") == 0.0

    def test_single_substitution(self):
        assert similarity("abcd", "abce") == pytest.approx(0.75)

    def test_classic_example(self):
        """1 - 3 / 7"""
        assert similarity("kitten", "sitting") == pytest.approx(0.571, abs=1e-3)

    def test_bounded(self):
        pairs = [("a", "b"), ("hobbit", "hobit"), ("", "x"), ("long title", "lt")]
        for a, b in pairs:
            assert 0.0 <= similarity(a, b) <= 1.0


class TestEntityResolver:
    """Tests for resolution rules and their priority."""

    @pytest.fixture
    def resolver(self):
        return EntityResolver()

    def test_exact_match_after_normalization(self, resolver):
        """Article, punctuation and case differences do not matter."""
        match = resolver.resolve(
            Descriptor("The Great Gatsby", "F. Scott Fitzgerald"),
            Descriptor("Great Gatsby", "F Scott Fitzgerald"),
        )

        assert match is not None
        assert match.match_type == MatchType.EXACT
        assert match.similarity == 1.0

    def test_different_books(self, resolver):
        assert resolver.resolve(
            Descriptor("Dune", "Frank Herbert"),
            Descriptor("1984", "George Orwell"),
        ) is None

    def test_subtitle_is_ignored(self, resolver):
        match = resolver.resolve(
            Descriptor("Sapiens", "Yuval Noah Harari"),
            Descriptor("Sapiens: A Brief History", "Yuval Noah Harari"),
        )

        assert match is not None
        assert match.similarity >= 0.85

    def test_unrelated_books(self, resolver):
        assert resolver.resolve(
            Descriptor("War and Peace", "Leo Tolstoy"),
            Descriptor("The Alchemist", "Paulo Coelho"),
        ) is None

    def test_isbn_match_wins(self, resolver):
        """Equal ISBNs match even when the titles differ."""
        match = resolver.resolve(
            Descriptor("Dune", "Frank Herbert", "9780441172719"),
            Descriptor("Dune (40th Anniversary)", "Herbert, Frank", "9780441172719"),
        )

        assert match.match_type == MatchType.ISBN
        assert match.similarity == 1.0

    def test_isbn_takes_priority_over_exact(self, resolver):
        match = resolver.resolve(
            Descriptor("Dune", "Frank Herbert", "9780441172719"),
            Descriptor("Dune", "Frank Herbert", "9780441172719"),
        )

        assert match.match_type == MatchType.ISBN

    def test_different_isbns_fall_through(self, resolver):
        """Different editions of the same work still match on text."""
        match = resolver.resolve(
            Descriptor("Dune", "Frank Herbert", "9780441172719"),
            Descriptor("Dune", "Frank Herbert", "0441172717"),
        )

        assert match.match_type == MatchType.EXACT

    def test_missing_isbn_falls_through(self, resolver):
        match = resolver.resolve(
            Descriptor("Dune", "Frank Herbert", "9780441172719"),
            Descriptor("Dune", "Frank Herbert"),
        )

        assert match.match_type == MatchType.EXACT

    def test_fuzzy_match_on_typo(self, resolver):
        match = resolver.resolve(
            Descriptor("The Hobbit", "J.R.R. Tolkien"),
            Descriptor("The Hobit", "J.R.R. Tolkien"),
        )

        assert match.match_type == MatchType.FUZZY
        assert match.similarity == pytest.approx(0.9)

    def test_score_exactly_at_threshold_matches(self, resolver):
        """0.6 * 0.75 + 0.4 * 1.0 == 0.85"""
        match = resolver.resolve(
            Descriptor("abcd", "Same Author"),
            Descriptor("abce", "Same Author"),
        )

        assert match is not None
        assert match.match_type == MatchType.FUZZY
        assert match.similarity == pytest.approx(0.85)

    def test_score_just_below_threshold_does_not_match(self, resolver, monkeypatch):
        monkeypatch.setattr(matcher, "similarity", lambda a, b: 0.849)

        assert resolver.resolve(
            Descriptor("abcd", "Same Author"),
            Descriptor("abce", "Same Author"),
        ) is None

    def test_custom_threshold(self):
        strict = EntityResolver(threshold=0.95)

        assert strict.resolve(
            Descriptor("The Hobbit", "J.R.R. Tolkien"),
            Descriptor("The Hobit", "J.R.R. Tolkien"),
        ) is None

    def test_custom_weights(self):
        """Title-only weighting ignores the author entirely."""
        title_only = EntityResolver(title_weight=1.0, author_weight=0.0)

        match = title_only.resolve(
            Descriptor("The Hobbit", "J.R.R. Tolkien"),
            Descriptor("The Hobbit", "Someone Else"),
        )

        assert match.match_type == MatchType.FUZZY
        assert match.similarity == pytest.approx(1.0)

    def test_find_first_match_returns_first(self, resolver):
        books = [
            Descriptor("1984", "George Orwell"),
            Descriptor("Dune", "Frank Herbert"),
            Descriptor("Dune", "Frank Herbert", "9780441172719"),
        ]

        found = resolver.find_first_match(Descriptor("Dune", "Frank Herbert"), books)

        assert found is not None
        book, match = found
        assert book is books[1]
        assert match.match_type == MatchType.EXACT

    def test_find_first_match_none(self, resolver):
        assert resolver.find_first_match(Descriptor("Dune"), []) is None
        assert resolver.find_first_match(
            Descriptor("Dune", "Frank Herbert"),
            [Descriptor("1984", "George Orwell")],
        ) is None

    def test_module_level_resolve_uses_defaults(self):
        match = resolve(
            Descriptor("The Great Gatsby", "F. Scott Fitzgerald"),
            Descriptor("Great Gatsby", "F. Scott Fitzgerald"),
        )

        assert match.match_type == MatchType.EXACT
