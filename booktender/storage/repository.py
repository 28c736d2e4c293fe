"""
Catalog Repository for BookTender

Structured storage for sessions, photos and books using SQLAlchemy:
- SQLite for the desktop catalog and for tests
- Any SQLAlchemy URL for other deployments
- Session deletion cascades to photos and books

Design Decisions:
1. Repository methods open a short-lived ORM session each and return plain
   dataclasses, so callers never hold live ORM objects.
2. Books are append-only from the pipeline's point of view; updates come
   only through update_book, restricted to user-editable fields.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from booktender.exceptions import NotFoundError
from booktender.storage.models import Base, BookModel, PhotoModel, SessionModel


@dataclass
class StoredSession:
    """Data class for session data transfer."""

    id: int
    name: str
    created_at: Optional[datetime] = None
    photo_count: int = 0
    book_count: int = 0

    @classmethod
    def from_model(
        cls,
        model: SessionModel,
        photo_count: int = 0,
        book_count: int = 0,
    ) -> "StoredSession":
        return cls(
            id=model.id,
            name=model.name,
            created_at=model.created_at,
            photo_count=photo_count,
            book_count=book_count,
        )


@dataclass
class StoredPhoto:
    """Data class for photo data transfer."""

    id: int
    session_id: int
    file_path: str
    content_hash: Optional[str] = None
    classification: str = "other"
    scanned_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: PhotoModel) -> "StoredPhoto":
        return cls(
            id=model.id,
            session_id=model.session_id,
            file_path=model.file_path,
            content_hash=model.content_hash,
            classification=model.classification or "other",
            scanned_at=model.scanned_at,
        )


@dataclass
class StoredBook:
    """Data class for book data transfer."""

    id: int
    session_id: int
    title: str
    author: str = ""

    # Catalog metadata
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    year: Optional[int] = None
    page_count: Optional[int] = None
    description: Optional[str] = None

    # User data
    tags: list[str] = field(default_factory=list)
    notes: Optional[str] = None
    verified: bool = False

    # Identification
    confidence: str = "low"
    source_photo_path: Optional[str] = None
    position: Optional[str] = None
    spine_text: Optional[str] = None

    added_at: Optional[datetime] = None
    session_name: Optional[str] = None

    @classmethod
    def from_model(cls, model: BookModel, session_name: Optional[str] = None) -> "StoredBook":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            session_id=model.session_id,
            title=model.title,
            author=model.author or "",
            isbn=model.isbn,
            cover_url=model.cover_url,
            year=model.year,
            page_count=model.page_count,
            description=model.description,
            tags=list(model.tags or []),
            notes=model.notes,
            verified=bool(model.verified),
            confidence=model.confidence or "low",
            source_photo_path=model.source_photo_path,
            position=model.position,
            spine_text=model.spine_text,
            added_at=model.added_at,
            session_name=session_name,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "cover_url": self.cover_url,
            "year": self.year,
            "page_count": self.page_count,
            "description": self.description,
            "tags": self.tags,
            "notes": self.notes,
            "verified": self.verified,
            "confidence": self.confidence,
            "source_photo_path": self.source_photo_path,
            "position": self.position,
            "spine_text": self.spine_text,
            "added_at": self.added_at.isoformat() if self.added_at else None,
            "session_name": self.session_name,
        }


class CatalogRepository:
    """
    Repository for session, photo and book CRUD operations.

    Usage:
        repo = CatalogRepository(sqlite_path=Path("booktender.db"))

        session = repo.get_or_create_session("Living room")
        book = repo.create_book(session.id, title="Dune", author="Frank Herbert")

        for book in repo.list_books(session.id):
            print(book.title)
    """

    # Fields a user may change after creation
    UPDATABLE_FIELDS = frozenset({
        "title",
        "author",
        "isbn",
        "cover_url",
        "year",
        "page_count",
        "description",
        "tags",
        "notes",
        "confidence",
        "verified",
    })

    def __init__(
        self,
        database_url: Optional[str] = None,
        sqlite_path: Optional[Path] = None,
        echo: bool = False,
    ):
        """
        Initialize repository.

        Args:
            database_url: SQLAlchemy database URL
            sqlite_path: Path for SQLite database
            echo: Log emitted SQL
        """
        if database_url:
            # Strip async drivers for sync engine
            self.database_url = database_url.replace("+aiosqlite", "").replace("+asyncpg", "")
        elif sqlite_path:
            self.database_url = f"sqlite:///{sqlite_path}"
        else:
            # Default to in-memory SQLite
            self.database_url = "sqlite:///:memory:"

        self.engine = create_engine(self.database_url, echo=echo)

        Base.metadata.create_all(self.engine)

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"CatalogRepository initialized: {self.database_url[:50]}")

    def get_session(self) -> Session:
        """Get database session."""
        return self.SessionLocal()

    def dispose(self):
        """Release pooled connections."""
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, name: str) -> StoredSession:
        """
        Create a new session.

        Args:
            name: Display name

        Returns:
            Created StoredSession
        """
        with self.get_session() as db:
            model = SessionModel(name=name)
            db.add(model)
            db.commit()
            db.refresh(model)

            logger.info(f"Created session {model.id} '{name}'")
            return StoredSession.from_model(model)

    def get_catalog_session(self, session_id: int) -> Optional[StoredSession]:
        """Get session by ID, with photo and book counts."""
        with self.get_session() as db:
            model = db.get(SessionModel, session_id)
            if model is None:
                return None
            return StoredSession.from_model(
                model,
                photo_count=self._count(db, PhotoModel, session_id),
                book_count=self._count(db, BookModel, session_id),
            )

    def find_session_by_name(self, name: str) -> Optional[StoredSession]:
        """Most recently created session with this name."""
        with self.get_session() as db:
            model = db.execute(
                select(SessionModel)
                .where(SessionModel.name == name)
                .order_by(SessionModel.created_at.desc(), SessionModel.id.desc())
            ).scalars().first()

            if model is None:
                return None
            return StoredSession.from_model(
                model,
                photo_count=self._count(db, PhotoModel, model.id),
                book_count=self._count(db, BookModel, model.id),
            )

    def get_or_create_session(self, name: str) -> StoredSession:
        existing = self.find_session_by_name(name)
        if existing is not None:
            return existing
        return self.create_session(name)

    def list_sessions(self) -> list[StoredSession]:
        """All sessions with counts, newest first."""
        with self.get_session() as db:
            photo_counts = dict(db.execute(
                select(PhotoModel.session_id, func.count(PhotoModel.id))
                .group_by(PhotoModel.session_id)
            ).all())
            book_counts = dict(db.execute(
                select(BookModel.session_id, func.count(BookModel.id))
                .group_by(BookModel.session_id)
            ).all())

            models = db.execute(
                select(SessionModel).order_by(SessionModel.created_at.desc(), SessionModel.id.desc())
            ).scalars().all()

            return [
                StoredSession.from_model(
                    m,
                    photo_count=photo_counts.get(m.id, 0),
                    book_count=book_counts.get(m.id, 0),
                )
                for m in models
            ]

    def rename_session(self, session_id: int, name: str) -> bool:
        with self.get_session() as db:
            model = db.get(SessionModel, session_id)
            if model is None:
                return False
            model.name = name
            db.commit()
            return True

    def delete_session(self, session_id: int) -> bool:
        """
        Delete a session together with its photos and books.

        Returns:
            True if deleted
        """
        with self.get_session() as db:
            model = db.get(SessionModel, session_id)
            if model is None:
                return False
            db.delete(model)
            db.commit()

            logger.info(f"Deleted session {session_id}")
            return True

    # ------------------------------------------------------------------
    # Photos
    # ------------------------------------------------------------------

    def create_photo(
        self,
        session_id: int,
        file_path: str,
        content_hash: Optional[str] = None,
        classification: str = "other",
    ) -> StoredPhoto:
        """
        Record an imported photo.

        Raises:
            NotFoundError: Unknown session
        """
        with self.get_session() as db:
            self._require_session(db, session_id)

            model = PhotoModel(
                session_id=session_id,
                file_path=str(file_path),
                content_hash=content_hash,
                classification=classification,
            )
            db.add(model)
            db.commit()
            db.refresh(model)

            return StoredPhoto.from_model(model)

    def list_photos(self, session_id: int) -> list[StoredPhoto]:
        with self.get_session() as db:
            models = db.execute(
                select(PhotoModel)
                .where(PhotoModel.session_id == session_id)
                .order_by(PhotoModel.id.asc())
            ).scalars().all()
            return [StoredPhoto.from_model(m) for m in models]

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def create_book(
        self,
        session_id: int,
        title: str,
        author: str = "",
        **fields,
    ) -> StoredBook:
        """
        Create a new book.

        Args:
            session_id: Owning session
            title: Book title
            author: Author(s)
            **fields: Additional BookModel columns

        Returns:
            Created StoredBook

        Raises:
            NotFoundError: Unknown session
        """
        with self.get_session() as db:
            self._require_session(db, session_id)

            if "tags" in fields:
                fields["tags"] = list(fields["tags"] or [])

            model = BookModel(
                session_id=session_id,
                title=title,
                author=author or "",
                **fields,
            )
            db.add(model)
            db.commit()
            db.refresh(model)

            return StoredBook.from_model(model)

    def get_book(self, book_id: int) -> Optional[StoredBook]:
        with self.get_session() as db:
            model = db.get(BookModel, book_id)
            if model is None:
                return None
            return StoredBook.from_model(model)

    def list_books(self, session_id: int) -> list[StoredBook]:
        """Books of one session in creation order."""
        with self.get_session() as db:
            models = db.execute(
                select(BookModel)
                .where(BookModel.session_id == session_id)
                .order_by(BookModel.id.asc())
            ).scalars().all()
            return [StoredBook.from_model(m) for m in models]

    def list_all_books(self) -> list[StoredBook]:
        """Every book with its session name, newest first."""
        with self.get_session() as db:
            rows = db.execute(
                select(BookModel, SessionModel.name)
                .join(SessionModel, BookModel.session_id == SessionModel.id)
                .order_by(BookModel.id.desc())
            ).all()
            return [StoredBook.from_model(book, session_name=name) for book, name in rows]

    def list_books_with_session_names(
        self,
        session_id: int,
        exclude: bool = False,
    ) -> list[StoredBook]:
        """
        Books of a session (or of every other session) with session names.

        Args:
            session_id: Reference session
            exclude: Return books outside the session instead
        """
        condition = (
            BookModel.session_id != session_id if exclude
            else BookModel.session_id == session_id
        )
        with self.get_session() as db:
            rows = db.execute(
                select(BookModel, SessionModel.name)
                .join(SessionModel, BookModel.session_id == SessionModel.id)
                .where(condition)
                .order_by(BookModel.id.asc())
            ).all()
            return [StoredBook.from_model(book, session_name=name) for book, name in rows]

    def update_book(self, book_id: int, **updates) -> Optional[StoredBook]:
        """
        Apply user edits to a book.

        Fields outside UPDATABLE_FIELDS are ignored.

        Returns:
            Updated StoredBook, or None if the book does not exist
        """
        allowed = {k: v for k, v in updates.items() if k in self.UPDATABLE_FIELDS}
        ignored = set(updates) - set(allowed)
        if ignored:
            logger.warning(f"Ignoring non-editable book fields: {sorted(ignored)}")

        with self.get_session() as db:
            model = db.get(BookModel, book_id)
            if model is None:
                return None

            for key, value in allowed.items():
                if key == "tags":
                    value = list(value or [])
                setattr(model, key, value)

            db.commit()
            db.refresh(model)
            return StoredBook.from_model(model)

    def delete_book(self, book_id: int) -> bool:
        with self.get_session() as db:
            model = db.get(BookModel, book_id)
            if model is None:
                return False
            db.delete(model)
            db.commit()
            return True

    def verify_high_confidence(self, session_id: int) -> int:
        """
        Mark every unverified high-confidence book of a session as verified.

        Returns:
            Number of books verified
        """
        with self.get_session() as db:
            models = db.execute(
                select(BookModel).where(
                    BookModel.session_id == session_id,
                    BookModel.confidence == "high",
                    BookModel.verified.is_(False),
                )
            ).scalars().all()

            for model in models:
                model.verified = True
            db.commit()
            return len(models)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_session(db: Session, session_id: int) -> SessionModel:
        model = db.get(SessionModel, session_id)
        if model is None:
            raise NotFoundError("Session", session_id)
        return model

    @staticmethod
    def _count(db: Session, model, session_id: int) -> int:
        return db.execute(
            select(func.count(model.id)).where(model.session_id == session_id)
        ).scalar_one()
