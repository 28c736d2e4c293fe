"""
Entity Resolution Module

Duplicate detection within a session (during enrichment) and across
sessions (batch).
"""

from booktender.resolution.matcher import (
    EntityResolver,
    Descriptor,
    Match,
    MatchType,
    normalize_for_comparison,
    levenshtein,
    similarity,
    resolve,
)
from booktender.resolution.cross_session import (
    find_cross_session_duplicates,
    DuplicatePair,
    BookSummary,
)

__all__ = [
    # Matcher
    "EntityResolver",
    "Descriptor",
    "Match",
    "MatchType",
    "normalize_for_comparison",
    "levenshtein",
    "similarity",
    "resolve",
    # Cross-session
    "find_cross_session_duplicates",
    "DuplicatePair",
    "BookSummary",
]
