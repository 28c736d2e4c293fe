"""
Cross-Session Duplicate Detection

Compares every book of one session with every book of all other sessions.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from booktender.exceptions import NotFoundError
from booktender.resolution.matcher import Descriptor, EntityResolver, MatchType
from booktender.storage.repository import CatalogRepository, StoredBook


@dataclass
class BookSummary:
    """Identity of one side of a duplicate pair."""

    id: int
    title: str
    author: str
    isbn: Optional[str]
    session_name: Optional[str]

    @classmethod
    def of(cls, book: StoredBook) -> "BookSummary":
        return cls(
            id=book.id,
            title=book.title,
            author=book.author,
            isbn=book.isbn,
            session_name=book.session_name,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "session_name": self.session_name,
        }


@dataclass
class DuplicatePair:
    """A book in the session and a matching book elsewhere."""

    book1: BookSummary
    book2: BookSummary
    match_type: MatchType
    similarity: float

    def to_dict(self) -> dict:
        return {
            "book1": self.book1.to_dict(),
            "book2": self.book2.to_dict(),
            "match_type": self.match_type.value,
            "similarity": self.similarity,
        }


def find_cross_session_duplicates(
    repository: CatalogRepository,
    session_id: int,
    resolver: Optional[EntityResolver] = None,
) -> list[DuplicatePair]:
    """
    Find books of a session that also appear in other sessions.

    Args:
        repository: Catalog store
        session_id: Session whose books are checked
        resolver: Matching rules (defaults to the standard resolver)

    Returns:
        Every matching pair, session book first, in no particular order

    Raises:
        NotFoundError: Unknown session
    """
    if repository.get_catalog_session(session_id) is None:
        raise NotFoundError("Session", session_id)

    resolver = resolver or EntityResolver()

    session_books = repository.list_books_with_session_names(session_id)
    other_books = repository.list_books_with_session_names(session_id, exclude=True)

    # Descriptors are built once; the comparison is quadratic
    others = [(book, Descriptor.of(book)) for book in other_books]

    duplicates = []
    for book in session_books:
        descriptor = Descriptor.of(book)
        for other, other_descriptor in others:
            match = resolver.resolve(descriptor, other_descriptor)
            if match is not None:
                duplicates.append(DuplicatePair(
                    book1=BookSummary.of(book),
                    book2=BookSummary.of(other),
                    match_type=match.match_type,
                    similarity=match.similarity,
                ))

    logger.info(
        f"Cross-session check for session {session_id}: "
        f"{len(session_books)} x {len(other_books)} books, {len(duplicates)} duplicate(s)"
    )
    return duplicates
