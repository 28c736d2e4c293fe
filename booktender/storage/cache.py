"""
Response Cache

Content-addressed caching of external service responses:
- Vision responses keyed by photo content hash
- Catalog responses keyed by ISBN
- Optional SQLite persistence behind an in-memory LRU layer

Entries never expire. A cache error is reported as a miss so callers
fall through to the external call.
"""

import json
import sqlite3
import time
from collections import OrderedDict
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger


class CacheNamespace(str, Enum):
    """Independent key spaces."""

    VISION = "vision"
    CATALOG = "catalog"


class ResponseCache:
    """
    Permanent cache for raw external-service responses.

    With no db_path everything lives in memory. With a db_path the SQLite
    file is authoritative and the memory layer only holds recently used
    entries.

    Usage:
        cache = ResponseCache("data/cache.db")
        cached = cache.get_vision(photo_hash)
        if cached is None:
            cache.put_vision(photo_hash, response)
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        table_name: str = "response_cache",
        memory_cache_size: int = 1000,
    ):
        """
        Initialize response cache.

        Args:
            db_path: Path to SQLite database (None for memory only)
            table_name: Table name for cached responses
            memory_cache_size: Entries kept in the memory layer when persistent
        """
        self.db_path = Path(db_path) if db_path else None
        self.table_name = table_name
        self.memory_cache_size = memory_cache_size
        self._memory: OrderedDict[tuple[str, str], str] = OrderedDict()
        self._hits = 0
        self._misses = 0

        if self.db_path:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()

        logger.info(f"ResponseCache initialized: persistent={self.db_path is not None}")

    @property
    def persistent(self) -> bool:
        return self.db_path is not None

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self):
        """Initialize database schema."""
        conn = self._connect()
        try:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table_name} (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    response TEXT NOT NULL,
                    cached_at REAL,
                    PRIMARY KEY (namespace, key)
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _remember(self, slot: tuple[str, str], payload: str):
        self._memory[slot] = payload
        self._memory.move_to_end(slot)
        if self.persistent:
            while len(self._memory) > self.memory_cache_size:
                self._memory.popitem(last=False)

    def _read(self, slot: tuple[str, str]) -> Optional[str]:
        if slot in self._memory:
            self._memory.move_to_end(slot)
            return self._memory[slot]

        if not self.persistent:
            return None

        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT response FROM {self.table_name} WHERE namespace = ? AND key = ?",
                slot,
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        self._remember(slot, row[0])
        return row[0]

    def get(self, namespace: Union[CacheNamespace, str], key: str) -> Optional[Any]:
        """
        Get a cached response.

        Args:
            namespace: Key space
            key: Photo hash or ISBN

        Returns:
            The decoded response, or None on a miss or cache error
        """
        slot = (CacheNamespace(namespace).value, key)

        try:
            payload = self._read(slot)
            value = json.loads(payload) if payload is not None else None
        except (sqlite3.Error, ValueError) as e:
            logger.warning(f"Cache read failed for {slot[0]}:{key}, treating as miss: {e}")
            value = None

        if value is None:
            self._misses += 1
            return None

        self._hits += 1
        logger.debug(f"Cache hit {slot[0]}:{key}")
        return value

    def put(self, namespace: Union[CacheNamespace, str], key: str, response: Any):
        """
        Store a response. Overwrites any previous value for the key.

        Args:
            namespace: Key space
            key: Photo hash or ISBN
            response: JSON-serializable response
        """
        slot = (CacheNamespace(namespace).value, key)

        try:
            payload = json.dumps(response)
            if self.persistent:
                conn = self._connect()
                try:
                    conn.execute(
                        f"INSERT OR REPLACE INTO {self.table_name} "
                        f"(namespace, key, response, cached_at) VALUES (?, ?, ?, ?)",
                        (slot[0], key, payload, time.time()),
                    )
                    conn.commit()
                finally:
                    conn.close()
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.warning(f"Cache write failed for {slot[0]}:{key}: {e}")
            return

        self._remember(slot, payload)
        logger.debug(f"Cache store {slot[0]}:{key}")

    def get_vision(self, photo_hash: str) -> Optional[list]:
        """Cached vision candidates for a photo hash."""
        return self.get(CacheNamespace.VISION, photo_hash)

    def put_vision(self, photo_hash: str, candidates: list):
        self.put(CacheNamespace.VISION, photo_hash, candidates)

    def get_catalog(self, isbn: str) -> Optional[dict]:
        """Cached catalog metadata for an ISBN."""
        return self.get(CacheNamespace.CATALOG, isbn)

    def put_catalog(self, isbn: str, metadata: dict):
        self.put(CacheNamespace.CATALOG, isbn, metadata)

    def contains(self, namespace: Union[CacheNamespace, str], key: str) -> bool:
        """Check if key exists."""
        slot = (CacheNamespace(namespace).value, key)
        try:
            return self._read(slot) is not None
        except sqlite3.Error:
            return False

    def remove(self, namespace: Union[CacheNamespace, str], key: str):
        """Remove one entry, forcing the next lookup to call the service."""
        slot = (CacheNamespace(namespace).value, key)
        self._memory.pop(slot, None)

        if self.persistent:
            conn = self._connect()
            try:
                conn.execute(
                    f"DELETE FROM {self.table_name} WHERE namespace = ? AND key = ?",
                    slot,
                )
                conn.commit()
            finally:
                conn.close()

    def clear(self, namespace: Optional[Union[CacheNamespace, str]] = None):
        """Clear all entries, or only those of one namespace."""
        if namespace is None:
            self._memory.clear()
        else:
            name = CacheNamespace(namespace).value
            for slot in [s for s in self._memory if s[0] == name]:
                del self._memory[slot]

        if self.persistent:
            conn = self._connect()
            try:
                if namespace is None:
                    conn.execute(f"DELETE FROM {self.table_name}")
                else:
                    conn.execute(
                        f"DELETE FROM {self.table_name} WHERE namespace = ?",
                        (CacheNamespace(namespace).value,),
                    )
                conn.commit()
            finally:
                conn.close()

    def count(self, namespace: Optional[Union[CacheNamespace, str]] = None) -> int:
        """Number of cached entries."""
        if not self.persistent:
            if namespace is None:
                return len(self._memory)
            name = CacheNamespace(namespace).value
            return sum(1 for slot in self._memory if slot[0] == name)

        conn = self._connect()
        try:
            if namespace is None:
                row = conn.execute(f"SELECT COUNT(*) FROM {self.table_name}").fetchone()
            else:
                row = conn.execute(
                    f"SELECT COUNT(*) FROM {self.table_name} WHERE namespace = ?",
                    (CacheNamespace(namespace).value,),
                ).fetchone()
        finally:
            conn.close()
        return row[0]

    @property
    def hit_rate(self) -> float:
        """Cache hit rate."""
        total = self._hits + self._misses
        if total == 0:
            return 0.0
        return self._hits / total

    def stats(self) -> dict:
        """Get cache statistics."""
        return {
            "persistent": self.persistent,
            "db_path": str(self.db_path) if self.db_path else None,
            "vision_entries": self.count(CacheNamespace.VISION),
            "catalog_entries": self.count(CacheNamespace.CATALOG),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self.hit_rate,
        }
