"""
Database models for BookTender.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    JSON,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionModel(Base):
    """One photo-capture session: a named collection of books."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    photos = relationship(
        "PhotoModel",
        back_populates="session",
        cascade="all, delete-orphan",
    )
    books = relationship(
        "BookModel",
        back_populates="session",
        cascade="all, delete-orphan",
    )


class PhotoModel(Base):
    """An imported image and the classification that seeds its books' tags."""

    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    file_path = Column(String(1024), nullable=False)
    classification = Column(String(50), default="other")
    content_hash = Column(String(64), index=True)
    scanned_at = Column(DateTime, default=utcnow, nullable=False)

    session = relationship("SessionModel", back_populates="photos")


class BookModel(Base):
    """SQLAlchemy model for cataloged books."""

    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)

    # Core fields
    title = Column(String(500), nullable=False)
    author = Column(String(500), default="")
    isbn = Column(String(13))

    # Catalog metadata
    cover_url = Column(String(1024))
    year = Column(Integer)
    page_count = Column(Integer)
    description = Column(Text)

    # User data
    tags = Column(JSON, default=list)
    notes = Column(Text)
    verified = Column(Boolean, default=False)

    # Identification
    confidence = Column(String(10), default="low")
    source_photo_path = Column(String(1024))
    position = Column(String(100))
    spine_text = Column(Text)

    added_at = Column(DateTime, default=utcnow)

    session = relationship("SessionModel", back_populates="books")

    __table_args__ = (
        Index("idx_books_session", "session_id"),
        Index("idx_books_isbn", "isbn"),
    )
