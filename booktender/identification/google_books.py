"""
Google Books API Client

Looks up bibliographic metadata for a book candidate using the Google
Books Volume API.
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx
from loguru import logger

from booktender.exceptions import CatalogError
from booktender.storage.credentials import CredentialStore


@dataclass
class BookMetadata:
    """Best catalog match for one query."""

    title: str
    author: str
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    year: Optional[int] = None
    page_count: Optional[int] = None
    description: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "cover_url": self.cover_url,
            "year": self.year,
            "page_count": self.page_count,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BookMetadata":
        """Create from dictionary."""
        return cls(
            title=data.get("title") or "Unknown",
            author=data.get("author") or "",
            isbn=data.get("isbn"),
            cover_url=data.get("cover_url"),
            year=data.get("year"),
            page_count=data.get("page_count"),
            description=data.get("description"),
        )


def parse_year(published_date: Optional[str]) -> Optional[int]:
    """Year from a catalog date string ("2005", "2005-09", "2005-09-01")."""
    if not published_date:
        return None
    prefix = str(published_date)[:4]
    if len(prefix) != 4 or not prefix.isdigit():
        return None
    return int(prefix)


def parse_volume(
    item: dict,
    fallback_title: str = "Unknown",
    fallback_author: str = "",
) -> BookMetadata:
    """Parse one volume resource into BookMetadata."""
    info = item.get("volumeInfo") or {}

    # ISBN-13 wins over ISBN-10 regardless of order
    isbn_10 = None
    isbn_13 = None
    for identifier in info.get("industryIdentifiers") or []:
        if identifier.get("type") == "ISBN_13" and isbn_13 is None:
            isbn_13 = identifier.get("identifier")
        elif identifier.get("type") == "ISBN_10" and isbn_10 is None:
            isbn_10 = identifier.get("identifier")

    images = info.get("imageLinks") or {}
    cover_url = images.get("thumbnail")
    if cover_url and cover_url.startswith("http:"):
        cover_url = cover_url.replace("http:", "https:", 1)

    authors = info.get("authors")

    return BookMetadata(
        title=info.get("title") or fallback_title,
        author=", ".join(authors) if authors else fallback_author,
        isbn=isbn_13 or isbn_10 or None,
        cover_url=cover_url or None,
        year=parse_year(info.get("publishedDate")),
        page_count=info.get("pageCount") or None,
        description=info.get("description") or None,
    )


def parse_volumes_response(
    data: dict,
    fallback_title: str = "Unknown",
    fallback_author: str = "",
) -> Optional[BookMetadata]:
    """
    Parse a volumes search response.

    Args:
        data: Decoded JSON body
        fallback_title: Used when the volume has no title
        fallback_author: Used when the volume lists no authors

    Returns:
        Metadata of the first item, or None when nothing matched
    """
    items = data.get("items") if isinstance(data, dict) else None
    if not items:
        return None
    return parse_volume(items[0], fallback_title, fallback_author)


class GoogleBooksClient:
    """
    Client for Google Books API.

    Works without a key at a lower daily quota; the "google_books"
    credential is used when present.
    """

    BASE_URL = "https://www.googleapis.com/books/v1"
    CREDENTIAL_NAME = "google_books"

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize client.

        Args:
            credentials: Store that may hold the "google_books" API key
            timeout: Per-request timeout in seconds
            client: Pre-built httpx client (tests inject a mock transport)
        """
        self.credentials = credentials
        self.timeout = timeout
        self._client = client
        self._warned_keyless = False

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _api_key(self) -> Optional[str]:
        api_key = self.credentials.get(self.CREDENTIAL_NAME) if self.credentials else None
        if not api_key and not self._warned_keyless:
            logger.warning("No Google Books API key provided. Rate limits will be lower.")
            self._warned_keyless = True
        return api_key or None

    @staticmethod
    def build_query(title: str, author: str = "", isbn: Optional[str] = None) -> str:
        """Search expression: ISBN when known, else title and author."""
        if isbn:
            return f"isbn:{isbn}"
        query = f"intitle:{title}"
        if author:
            query += f" inauthor:{author}"
        return query

    async def lookup(
        self,
        title: str,
        author: str = "",
        isbn: Optional[str] = None,
    ) -> Optional[BookMetadata]:
        """
        Find the single best catalog match.

        Args:
            title: Candidate title
            author: Candidate author
            isbn: Exact ISBN, preferred over title/author when given

        Returns:
            BookMetadata, or None when the catalog has no match

        Raises:
            CatalogError: Request failed or the body was not JSON
        """
        client = await self._get_client()

        params: dict[str, Any] = {
            "q": self.build_query(title, author, isbn),
            "maxResults": 1,
        }
        api_key = self._api_key()
        if api_key:
            params["key"] = api_key

        try:
            response = await client.get(f"{self.BASE_URL}/volumes", params=params)
        except httpx.HTTPError as e:
            raise CatalogError(f"Google Books request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Google Books API error {response.status_code}: {response.text[:200]}")
            raise CatalogError(
                f"Google Books API error {response.status_code}",
                detail=response.text[:200],
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogError("Google Books returned a non-JSON body") from e

        metadata = parse_volumes_response(data, title, author)
        if metadata is None:
            logger.info(f"No catalog match for '{params['q']}'")
        return metadata

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
