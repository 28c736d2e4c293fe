"""
Enrichment Pipeline

Turns imported photos into cataloged books:
1. Import: content-addressed copy into managed storage
2. Identify: vision model (cached by photo hash)
3. Enrich: catalog metadata per candidate (cached by ISBN)
4. Resolve: duplicate check against the session's existing books
5. Persist: one book record per candidate

Failures are recorded on the smallest unit they affect. A photo whose
identification fails ends in ERROR; a candidate whose catalog lookup
fails is still saved, just without metadata.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from loguru import logger

from booktender.config import Settings
from booktender.exceptions import CatalogError, IdentificationError, NotFoundError
from booktender.identification.candidates import BookCandidate
from booktender.identification.google_books import BookMetadata, GoogleBooksClient
from booktender.identification.vision import VisionIdentifier, media_type_for
from booktender.pipeline.tags import DEFAULT_CLASSIFICATION, default_tags
from booktender.resolution.matcher import Descriptor, EntityResolver, Match, MatchType
from booktender.storage.cache import ResponseCache
from booktender.storage.credentials import CredentialStore
from booktender.storage.photo_store import ImportedPhoto, PhotoStore
from booktender.storage.repository import CatalogRepository, StoredBook


CANCELLED_MESSAGE = "Import cancelled"


class PhotoStatus(str, Enum):
    """Processing stage of one photo."""

    PENDING = "pending"
    IMPORTING = "importing"
    IDENTIFYING = "identifying"
    ENRICHING = "enriching"
    DONE = "done"
    ERROR = "error"


# Stages only move forward; DONE and ERROR are terminal
_TRANSITIONS = {
    PhotoStatus.PENDING: {PhotoStatus.IMPORTING, PhotoStatus.ERROR},
    PhotoStatus.IMPORTING: {PhotoStatus.IDENTIFYING, PhotoStatus.ERROR},
    PhotoStatus.IDENTIFYING: {PhotoStatus.ENRICHING, PhotoStatus.ERROR},
    PhotoStatus.ENRICHING: {PhotoStatus.DONE, PhotoStatus.ERROR},
    PhotoStatus.DONE: set(),
    PhotoStatus.ERROR: set(),
}


@dataclass
class CandidateOutcome:
    """What became of one identified candidate."""

    candidate: BookCandidate
    book: Optional[StoredBook] = None
    metadata: Optional[BookMetadata] = None
    duplicate_of: Optional[StoredBook] = None
    match: Optional[Match] = None
    error: Optional[str] = None

    @property
    def enriched(self) -> bool:
        return self.metadata is not None

    @property
    def succeeded(self) -> bool:
        return self.book is not None


@dataclass
class PhotoOutcome:
    """Terminal state of one photo and the books it produced."""

    source_path: Path
    status: PhotoStatus = PhotoStatus.PENDING
    stored_path: Optional[Path] = None
    content_hash: Optional[str] = None
    photo_id: Optional[int] = None
    from_cache: bool = False
    candidates: list[CandidateOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def books(self) -> list[StoredBook]:
        return [c.book for c in self.candidates if c.book is not None]

    @property
    def is_terminal(self) -> bool:
        return self.status in (PhotoStatus.DONE, PhotoStatus.ERROR)


@dataclass
class ImportOutcome:
    """Result of one batch import."""

    session_id: int
    photos: list[PhotoOutcome] = field(default_factory=list)

    @property
    def done(self) -> list[PhotoOutcome]:
        return [p for p in self.photos if p.status == PhotoStatus.DONE]

    @property
    def failed(self) -> list[PhotoOutcome]:
        return [p for p in self.photos if p.status == PhotoStatus.ERROR]

    @property
    def books(self) -> list[StoredBook]:
        return [book for photo in self.photos for book in photo.books]

    @property
    def duplicates(self) -> list[CandidateOutcome]:
        return [
            c for photo in self.photos for c in photo.candidates
            if c.duplicate_of is not None
        ]

    def summary(self) -> str:
        return (
            f"{len(self.done)}/{len(self.photos)} photo(s) processed, "
            f"{len(self.books)} book(s) added, "
            f"{len(self.duplicates)} possible duplicate(s), "
            f"{len(self.failed)} failed"
        )


class CancellationToken:
    """Cooperative cancellation, checked between pipeline stages."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


ProgressCallback = Callable[[PhotoOutcome], None]


def duplicate_note(existing: StoredBook, match: Match) -> str:
    """Human-readable warning stored in a new book's notes."""
    if match.match_type == MatchType.FUZZY:
        return (
            f'Possible duplicate of "{existing.title}" '
            f"(fuzzy match, {match.similarity:.0%} similar)"
        )
    return f'Possible duplicate of "{existing.title}" ({match.match_type.value} match)'


class EnrichmentPipeline:
    """
    Photo-to-catalog pipeline.

    One task runs per photo, at most max_concurrent_photos at a time.
    Only the vision and catalog calls overlap; photo storage, cache and
    repository calls are synchronous and run on the event loop.
    Candidates of a photo are handled in order. The duplicate check and
    the insert that follows it form a critical section per session, so two
    photos of the same session never both miss each other's copy of a book.

    Usage:
        pipeline = EnrichmentPipeline(repo, photo_store, cache, vision, catalog)
        outcome = await pipeline.run(session.id, ["shelf1.jpg", "shelf2.jpg"], "my-shelf")
        print(outcome.summary())
    """

    def __init__(
        self,
        repository: CatalogRepository,
        photo_store: PhotoStore,
        cache: ResponseCache,
        vision: VisionIdentifier,
        catalog: Optional[GoogleBooksClient] = None,
        resolver: Optional[EntityResolver] = None,
        max_concurrent_photos: int = 1,
        vision_timeout: Optional[float] = None,
        catalog_timeout: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Initialize pipeline.

        Args:
            repository: Catalog store for photos and books
            photo_store: Managed photo storage
            cache: Vision/catalog response cache
            vision: Vision identification client
            catalog: Catalog client (None skips enrichment)
            resolver: Duplicate detection rules
            max_concurrent_photos: Photos processed at once (1 = sequential)
            vision_timeout: Seconds allowed per vision call (None = no limit)
            catalog_timeout: Seconds allowed per catalog call (None = no limit)
            on_progress: Called after every photo stage change
        """
        self.repository = repository
        self.photo_store = photo_store
        self.cache = cache
        self.vision = vision
        self.catalog = catalog
        self.resolver = resolver or EntityResolver()
        self.max_concurrent_photos = max(1, max_concurrent_photos)
        self.vision_timeout = vision_timeout
        self.catalog_timeout = catalog_timeout
        self.on_progress = on_progress

        self._session_locks: dict[int, asyncio.Lock] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        repository: CatalogRepository,
        credentials: CredentialStore,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "EnrichmentPipeline":
        """Build a pipeline with the production clients."""
        return cls(
            repository=repository,
            photo_store=PhotoStore(settings.photos_dir),
            cache=ResponseCache(settings.cache_path),
            vision=VisionIdentifier(
                credentials,
                model=settings.vision_model,
                max_tokens=settings.vision_max_tokens,
                timeout=settings.vision_timeout,
            ),
            catalog=GoogleBooksClient(credentials, timeout=settings.catalog_timeout),
            resolver=EntityResolver(
                threshold=settings.fuzzy_threshold,
                title_weight=settings.title_weight,
                author_weight=settings.author_weight,
            ),
            max_concurrent_photos=settings.max_concurrent_photos,
            vision_timeout=settings.vision_timeout,
            catalog_timeout=settings.catalog_timeout,
            on_progress=on_progress,
        )

    async def run(
        self,
        session_id: int,
        file_paths: Iterable[Union[str, Path]],
        classification: str = DEFAULT_CLASSIFICATION,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImportOutcome:
        """
        Import and catalog a batch of photos.

        Args:
            session_id: Session receiving the books
            file_paths: Source photos
            classification: Photo kind, seeds default tags
            cancel_token: Optional cooperative cancellation

        Returns:
            ImportOutcome with one PhotoOutcome per path, in input order

        Raises:
            NotFoundError: Unknown session
        """
        if self.repository.get_catalog_session(session_id) is None:
            raise NotFoundError("Session", session_id)

        paths = [Path(p) for p in file_paths]
        logger.info(f"Importing {len(paths)} photo(s) into session {session_id} as '{classification}'")

        semaphore = asyncio.Semaphore(self.max_concurrent_photos)

        async def guarded(path: Path) -> PhotoOutcome:
            async with semaphore:
                return await self.process_photo(session_id, path, classification, cancel_token)

        results = await asyncio.gather(*(guarded(p) for p in paths))

        outcome = ImportOutcome(session_id=session_id, photos=list(results))
        logger.info(f"Import finished: {outcome.summary()}")
        return outcome

    async def process_photo(
        self,
        session_id: int,
        path: Union[str, Path],
        classification: str = DEFAULT_CLASSIFICATION,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PhotoOutcome:
        """
        Run one photo through every stage.

        Never raises for unit failures; they end the photo in ERROR with
        the message preserved.
        """
        outcome = PhotoOutcome(source_path=Path(path))

        # Importing
        if self._cancelled(cancel_token):
            return self._fail(outcome, CANCELLED_MESSAGE)
        self._advance(outcome, PhotoStatus.IMPORTING)

        try:
            imported = self.photo_store.import_file(path)
            photo = self.repository.create_photo(
                session_id,
                str(imported.stored_path),
                content_hash=imported.content_hash,
                classification=classification,
            )
        except Exception as e:
            return self._fail(outcome, f"Import failed: {e}")

        outcome.stored_path = imported.stored_path
        outcome.content_hash = imported.content_hash
        outcome.photo_id = photo.id

        # Identifying
        if self._cancelled(cancel_token):
            return self._fail(outcome, CANCELLED_MESSAGE)
        self._advance(outcome, PhotoStatus.IDENTIFYING)

        try:
            candidates, outcome.from_cache = await self.identify(imported)
        except Exception as e:
            return self._fail(outcome, str(e) or type(e).__name__)

        # Enriching
        self._advance(outcome, PhotoStatus.ENRICHING)

        for candidate in candidates:
            if self._cancelled(cancel_token):
                return self._fail(outcome, CANCELLED_MESSAGE)
            outcome.candidates.append(
                await self.enrich_candidate(
                    session_id,
                    candidate,
                    source_photo_path=str(imported.stored_path),
                    classification=classification,
                )
            )

        self._advance(outcome, PhotoStatus.DONE)
        logger.info(
            f"{outcome.source_path.name}: {len(outcome.books)}/{len(candidates)} book(s) saved"
        )
        return outcome

    async def identify(self, imported: ImportedPhoto) -> tuple[list[BookCandidate], bool]:
        """
        Candidates for a stored photo, from cache when possible.

        Returns:
            (candidates, from_cache)

        Raises:
            IdentificationError: Vision call failed, timed out or was unusable
            MissingCredentialError: No vision API key
        """
        cached = self.cache.get_vision(imported.content_hash)
        if cached is not None:
            logger.info(f"Using cached identification for {imported.content_hash[:12]}")
            return [BookCandidate.from_dict(item) for item in cached], True

        image_bytes = self.photo_store.read(imported.stored_path)

        try:
            candidates = await self._with_timeout(
                self.vision.identify(image_bytes, media_type_for(imported.stored_path)),
                self.vision_timeout,
            )
        except asyncio.TimeoutError as e:
            raise IdentificationError(
                f"Vision request timed out after {self.vision_timeout:g}s"
            ) from e

        self.cache.put_vision(imported.content_hash, [c.to_dict() for c in candidates])
        return candidates, False

    async def lookup_metadata(self, candidate: BookCandidate) -> Optional[BookMetadata]:
        """
        Catalog metadata for a candidate, from cache when possible.

        Raises:
            CatalogError: Lookup failed or timed out
        """
        if candidate.isbn:
            cached = self.cache.get_catalog(candidate.isbn)
            if cached is not None:
                return BookMetadata.from_dict(cached)

        try:
            metadata = await self._with_timeout(
                self.catalog.lookup(candidate.title, candidate.author, isbn=candidate.isbn),
                self.catalog_timeout,
            )
        except asyncio.TimeoutError as e:
            raise CatalogError(
                f"Catalog request timed out after {self.catalog_timeout:g}s"
            ) from e

        if metadata is not None:
            key = candidate.isbn or metadata.isbn
            if key:
                self.cache.put_catalog(key, metadata.to_dict())

        return metadata

    async def enrich_candidate(
        self,
        session_id: int,
        candidate: BookCandidate,
        source_photo_path: Optional[str] = None,
        classification: str = DEFAULT_CLASSIFICATION,
    ) -> CandidateOutcome:
        """
        Enrich, duplicate-check and persist one candidate.

        Never raises; a persistence failure is recorded on the outcome.
        """
        metadata = None
        if self.catalog is not None and self._worth_looking_up(candidate):
            try:
                metadata = await self.lookup_metadata(candidate)
            except Exception as e:
                logger.warning(f"Catalog lookup failed for '{candidate.title}', saving unenriched: {e}")

        fields = self._merge(candidate, metadata, classification, source_photo_path)
        descriptor = Descriptor(fields["title"], fields["author"], fields["isbn"])

        duplicate_of = None
        match = None
        try:
            async with self._lock_for(session_id):
                found = self.resolver.find_first_match(
                    descriptor,
                    self.repository.list_books(session_id),
                )
                notes = None
                if found is not None:
                    duplicate_of, match = found
                    notes = duplicate_note(duplicate_of, match)
                    logger.info(
                        f"'{descriptor.title}' looks like book {duplicate_of.id} "
                        f"({match.match_type.value}, {match.similarity:.2f})"
                    )

                book = self.repository.create_book(session_id, notes=notes, **fields)
        except Exception as e:
            logger.error(f"Failed to save '{descriptor.title}': {e}")
            return CandidateOutcome(
                candidate=candidate,
                metadata=metadata,
                duplicate_of=duplicate_of,
                match=match,
                error=str(e) or type(e).__name__,
            )

        return CandidateOutcome(
            candidate=candidate,
            book=book,
            metadata=metadata,
            duplicate_of=duplicate_of,
            match=match,
        )

    async def close(self):
        """Close external service clients."""
        await self.vision.close()
        if self.catalog is not None:
            await self.catalog.close()

    @staticmethod
    def _worth_looking_up(candidate: BookCandidate) -> bool:
        # An "Unknown" title would only match some unrelated book called "Unknown"
        return bool(candidate.isbn) or not candidate.is_unknown

    @staticmethod
    def _merge(
        candidate: BookCandidate,
        metadata: Optional[BookMetadata],
        classification: str,
        source_photo_path: Optional[str],
    ) -> dict:
        """Book fields: catalog values where present, candidate values otherwise."""
        return {
            "title": (metadata.title if metadata else None) or candidate.title,
            "author": (metadata.author if metadata else None) or candidate.author,
            "isbn": (metadata.isbn if metadata else None) or candidate.isbn,
            "cover_url": metadata.cover_url if metadata else None,
            "year": metadata.year if metadata else None,
            "page_count": metadata.page_count if metadata else None,
            "description": metadata.description if metadata else None,
            "tags": default_tags(classification),
            "confidence": candidate.confidence.value,
            "verified": False,
            "source_photo_path": source_photo_path,
            "position": candidate.position,
            "spine_text": candidate.spine_text,
        }

    def _lock_for(self, session_id: int) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = self._session_locks[session_id] = asyncio.Lock()
        return lock

    def _advance(self, outcome: PhotoOutcome, status: PhotoStatus):
        if status not in _TRANSITIONS[outcome.status]:
            raise RuntimeError(f"Invalid photo transition {outcome.status.value} -> {status.value}")
        outcome.status = status
        logger.debug(f"{outcome.source_path.name}: {status.value}")
        if self.on_progress is not None:
            try:
                self.on_progress(outcome)
            except Exception:
                logger.exception(f"Progress callback failed for {outcome.source_path.name}")

    def _fail(self, outcome: PhotoOutcome, message: str) -> PhotoOutcome:
        logger.error(f"{outcome.source_path.name}: {message}")
        outcome.error = message
        self._advance(outcome, PhotoStatus.ERROR)
        return outcome

    @staticmethod
    def _cancelled(token: Optional[CancellationToken]) -> bool:
        return token is not None and token.cancelled

    @staticmethod
    async def _with_timeout(awaitable, timeout: Optional[float]):
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)
