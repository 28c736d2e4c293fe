"""
BookTender command line.

Usage:
    booktender import "Living room" shelf1.jpg shelf2.jpg --classification my-shelf
    booktender sessions
    booktender books "Living room"
    booktender duplicates "Living room"
    booktender delete-session "Living room"

SESSION arguments accept a session id or name.
"""

import argparse
import asyncio
import signal
import sys
from contextlib import suppress
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

from booktender import __version__
from booktender.config import Settings, get_settings
from booktender.exceptions import BookTenderException, NotFoundError
from booktender.pipeline.enrichment import CancellationToken, EnrichmentPipeline, PhotoStatus
from booktender.pipeline.tags import CLASSIFICATIONS, DEFAULT_CLASSIFICATION
from booktender.resolution.cross_session import find_cross_session_duplicates
from booktender.resolution.matcher import EntityResolver
from booktender.storage.cache import CacheNamespace, ResponseCache
from booktender.storage.credentials import CredentialStore, EnvCredentialStore
from booktender.storage.repository import CatalogRepository, StoredSession


def configure_logging(level: str):
    """Send log records to stderr at the given level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def build_pipeline(
    settings: Settings,
    repository: CatalogRepository,
    credentials: CredentialStore,
) -> EnrichmentPipeline:
    return EnrichmentPipeline.from_settings(settings, repository, credentials)


def resolve_session(repository: CatalogRepository, ref: str) -> StoredSession:
    """
    Session by id or name.

    Raises:
        NotFoundError: No such session
    """
    if ref.isdigit():
        session = repository.get_catalog_session(int(ref))
        if session is not None:
            return session

    session = repository.find_session_by_name(ref)
    if session is None:
        raise NotFoundError("Session", ref)
    return session


# =============================================================================
# Commands
# =============================================================================

async def _run_import(
    args: argparse.Namespace,
    settings: Settings,
    repository: CatalogRepository,
) -> int:
    session = None
    if args.session.isdigit():
        session = repository.get_catalog_session(int(args.session))
    if session is None:
        session = repository.get_or_create_session(args.session)

    pipeline = build_pipeline(settings, repository, EnvCredentialStore())
    if args.concurrency:
        pipeline.max_concurrent_photos = max(1, args.concurrency)

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    # Not available on every platform; Ctrl+C then aborts instead of draining
    with suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, token.cancel)

    try:
        outcome = await pipeline.run(session.id, args.photos, args.classification, token)
    finally:
        await pipeline.close()

    print(f"Session #{session.id} '{session.name}'")
    for photo in outcome.photos:
        if photo.status == PhotoStatus.ERROR:
            print(f"  [error] {photo.source_path}: {photo.error}")
            continue

        cached = " (cached)" if photo.from_cache else ""
        print(f"  [done]  {photo.source_path}: {len(photo.books)} book(s){cached}")
        for result in photo.candidates:
            if result.book is None:
                print(f"          ! {result.candidate.title}: {result.error}")
                continue
            line = f"          #{result.book.id} {result.book.title}"
            if result.book.author:
                line += f" by {result.book.author}"
            if result.duplicate_of is not None:
                line += f"  (duplicate of #{result.duplicate_of.id})"
            print(line)

    print(outcome.summary())
    return 1 if outcome.failed else 0


def cmd_import(args, settings, repository) -> int:
    return asyncio.run(_run_import(args, settings, repository))


def cmd_sessions(args, settings, repository) -> int:
    sessions = repository.list_sessions()
    if not sessions:
        print("No sessions")
        return 0

    for s in sessions:
        created = s.created_at.strftime("%Y-%m-%d %H:%M") if s.created_at else "-"
        print(f"#{s.id:<4} {s.name:<30} {s.photo_count:>4} photo(s) {s.book_count:>5} book(s)  {created}")
    return 0


def cmd_books(args, settings, repository) -> int:
    session = resolve_session(repository, args.session)
    books = repository.list_books(session.id)

    print(f"Session #{session.id} '{session.name}': {len(books)} book(s)")
    for book in books:
        line = f"#{book.id:<5} {book.title}"
        if book.author:
            line += f" by {book.author}"
        if book.year:
            line += f" ({book.year})"
        flags = [book.confidence]
        if book.verified:
            flags.append("verified")
        line += f"  [{', '.join(flags)}]"
        if book.tags:
            line += f"  tags: {', '.join(book.tags)}"
        print(line)
        if book.notes:
            print(f"        {book.notes}")
    return 0


def cmd_duplicates(args, settings, repository) -> int:
    session = resolve_session(repository, args.session)
    resolver = EntityResolver(
        threshold=settings.fuzzy_threshold,
        title_weight=settings.title_weight,
        author_weight=settings.author_weight,
    )
    pairs = find_cross_session_duplicates(repository, session.id, resolver)
    pairs.sort(key=lambda p: p.similarity, reverse=True)

    if not pairs:
        print(f"No duplicates of '{session.name}' in other sessions")
        return 0

    for pair in pairs:
        print(
            f"{pair.similarity:>4.0%} {pair.match_type.value:<5} "
            f"#{pair.book1.id} {pair.book1.title} <-> "
            f"#{pair.book2.id} {pair.book2.title} [{pair.book2.session_name}]"
        )
    return 0


def cmd_verify(args, settings, repository) -> int:
    session = resolve_session(repository, args.session)
    count = repository.verify_high_confidence(session.id)
    print(f"Verified {count} high-confidence book(s) in '{session.name}'")
    return 0


def cmd_delete_session(args, settings, repository) -> int:
    session = resolve_session(repository, args.session)
    repository.delete_session(session.id)
    print(f"Deleted session #{session.id} '{session.name}' ({session.book_count} book(s))")
    return 0


def cmd_clear_cache(args, settings, repository) -> int:
    cache = ResponseCache(settings.cache_path)
    namespace = CacheNamespace(args.namespace) if args.namespace else None
    removed = cache.count(namespace)
    cache.clear(namespace)
    print(f"Removed {removed} cached response(s)")
    return 0


# =============================================================================
# Entry point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="booktender",
        description="Catalog books from shelf photos",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--database-url", help="SQLAlchemy database URL (default: DATABASE_URL)")
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL or INFO)")

    commands = parser.add_subparsers(dest="command", required=True)

    p = commands.add_parser("import", help="Identify and catalog books in photos")
    p.add_argument("session", help="Session id or name (created if missing)")
    p.add_argument("photos", nargs="+", help="Photo files")
    p.add_argument(
        "--classification",
        choices=sorted(CLASSIFICATIONS),
        default=DEFAULT_CLASSIFICATION,
        help="Kind of photo, sets default tags",
    )
    p.add_argument("--concurrency", type=int, help="Photos processed at once")
    p.set_defaults(handler=cmd_import)

    p = commands.add_parser("sessions", help="List sessions")
    p.set_defaults(handler=cmd_sessions)

    p = commands.add_parser("books", help="List books of a session")
    p.add_argument("session")
    p.set_defaults(handler=cmd_books)

    p = commands.add_parser("duplicates", help="Find books of a session present in other sessions")
    p.add_argument("session")
    p.set_defaults(handler=cmd_duplicates)

    p = commands.add_parser("verify", help="Mark high-confidence books of a session as verified")
    p.add_argument("session")
    p.set_defaults(handler=cmd_verify)

    p = commands.add_parser("delete-session", help="Delete a session with its photos and books")
    p.add_argument("session")
    p.set_defaults(handler=cmd_delete_session)

    p = commands.add_parser("clear-cache", help="Forget cached service responses")
    p.add_argument("--namespace", choices=[n.value for n in CacheNamespace])
    p.set_defaults(handler=cmd_clear_cache)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()

    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    repository = CatalogRepository(
        database_url=args.database_url or settings.database_url,
        echo=settings.database_echo,
    )
    try:
        return args.handler(args, settings, repository)
    except BookTenderException as e:
        print(f"Error: {e.message}" + (f" ({e.detail})" if e.detail else ""), file=sys.stderr)
        return 1
    finally:
        repository.dispose()


if __name__ == "__main__":
    sys.exit(main())
