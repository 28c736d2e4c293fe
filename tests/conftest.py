"""
Pytest configuration and fixtures for BookTender tests.
"""

import sys
from pathlib import Path
from typing import Callable, Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from booktender.identification.candidates import BookCandidate
from booktender.identification.google_books import BookMetadata
from booktender.pipeline.enrichment import EnrichmentPipeline
from booktender.storage.cache import ResponseCache
from booktender.storage.credentials import InMemoryCredentialStore
from booktender.storage.photo_store import PhotoStore
from booktender.storage.repository import CatalogRepository


# =============================================================================
# Service Doubles
# =============================================================================

class FakeVision:
    """
    Vision service double.

    Answers are looked up by image bytes; a stored exception is raised
    instead of returned.
    """

    def __init__(self):
        self.responses: dict[bytes, object] = {}
        self.default: list[BookCandidate] = []
        self.calls: list[tuple[bytes, str]] = []

    async def identify(self, image_bytes: bytes, media_type: str = "image/jpeg") -> list[BookCandidate]:
        self.calls.append((image_bytes, media_type))
        result = self.responses.get(image_bytes, self.default)
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def close(self):
        pass


class FakeCatalog:
    """Catalog service double keyed by ISBN or title."""

    def __init__(self):
        self.records: dict[str, BookMetadata] = {}
        self.error: Optional[Exception] = None
        self.calls: list[tuple[str, str, Optional[str]]] = []

    async def lookup(self, title: str, author: str = "", isbn: Optional[str] = None) -> Optional[BookMetadata]:
        self.calls.append((title, author, isbn))
        if self.error is not None:
            raise self.error
        if isbn and isbn in self.records:
            return self.records[isbn]
        return self.records.get(title)

    async def close(self):
        pass


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def repository():
    """In-memory catalog repository."""
    repo = CatalogRepository()
    yield repo
    repo.dispose()


@pytest.fixture
def catalog_session(repository):
    """An empty session."""
    return repository.create_session("Living room")


@pytest.fixture
def cache() -> ResponseCache:
    """Memory-only response cache."""
    return ResponseCache()


@pytest.fixture
def photo_store(tmp_path) -> PhotoStore:
    return PhotoStore(tmp_path / "photos")


@pytest.fixture
def credentials() -> InMemoryCredentialStore:
    return InMemoryCredentialStore({
        "anthropic": "test-anthropic-key",
        "google_books": "test-books-key",
    })


# =============================================================================
# Pipeline Fixtures
# =============================================================================

@pytest.fixture
def vision() -> FakeVision:
    return FakeVision()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def write_photo(tmp_path) -> Callable[..., Path]:
    """Factory writing a source photo outside managed storage."""
    incoming = tmp_path / "incoming"
    incoming.mkdir()

    def _write(name: str, content: bytes) -> Path:
        path = incoming / name
        path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def make_pipeline(repository, photo_store, cache, vision, catalog):
    """Factory for pipelines wired to the fixtures; keyword overrides allowed."""

    def _make(**kwargs) -> EnrichmentPipeline:
        options = {
            "repository": repository,
            "photo_store": photo_store,
            "cache": cache,
            "vision": vision,
            "catalog": catalog,
        }
        options.update(kwargs)
        return EnrichmentPipeline(**options)

    return _make


# =============================================================================
# Sample Data
# =============================================================================

@pytest.fixture
def dune_metadata() -> BookMetadata:
    return BookMetadata(
        title="Dune",
        author="Frank Herbert",
        isbn="9780441172719",
        cover_url="https://books.google.com/dune.jpg",
        year=1965,
        page_count=617,
        description="Desert planet.",
    )


@pytest.fixture
def sample_volume() -> dict:
    """Google Books volume resource."""
    return {
        "volumeInfo": {
            "title": "Dune",
            "authors": ["Frank Herbert"],
            "publishedDate": "1965-08-01",
            "pageCount": 617,
            "description": "Desert planet.",
            "industryIdentifiers": [
                {"type": "ISBN_10", "identifier": "0441172717"},
                {"type": "ISBN_13", "identifier": "9780441172719"},
            ],
            "imageLinks": {"thumbnail": "http://books.google.com/dune.jpg"},
        }
    }
