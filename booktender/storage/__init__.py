"""
Storage Module for BookTender

Persistence collaborators of the pipeline:
- Catalog repository (sessions, photos, books)
- Content-addressed response cache
- Content-addressed photo storage
- Credential access
"""

from booktender.storage.repository import (
    CatalogRepository,
    StoredSession,
    StoredPhoto,
    StoredBook,
)
from booktender.storage.cache import (
    ResponseCache,
    CacheNamespace,
)
from booktender.storage.photo_store import (
    PhotoStore,
    ImportedPhoto,
)
from booktender.storage.credentials import (
    CredentialStore,
    EnvCredentialStore,
    InMemoryCredentialStore,
)

__all__ = [
    # Repository
    "CatalogRepository",
    "StoredSession",
    "StoredPhoto",
    "StoredBook",
    # Cache
    "ResponseCache",
    "CacheNamespace",
    # Photos
    "PhotoStore",
    "ImportedPhoto",
    # Credentials
    "CredentialStore",
    "EnvCredentialStore",
    "InMemoryCredentialStore",
]
