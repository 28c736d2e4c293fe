"""
Unit tests for the response cache.
"""

import sqlite3

from booktender.storage.cache import CacheNamespace, ResponseCache


class TestMemoryCache:
    """Tests for the memory-only cache."""

    def test_miss_then_hit(self, cache):
        assert cache.get_vision("abc") is None

        cache.put_vision("abc", [{"title": "Dune"}])

        assert cache.get_vision("abc") == [{"title": "Dune"}]
        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 1

    def test_empty_list_is_a_hit(self, cache):
        """A photo with no books is still a cached answer."""
        cache.put_vision("empty", [])

        assert cache.get_vision("empty") == []

    def test_namespaces_are_independent(self, cache):
        cache.put(CacheNamespace.VISION, "key", ["vision"])
        cache.put(CacheNamespace.CATALOG, "key", {"title": "catalog"})

        assert cache.get("vision", "key") == ["vision"]
        assert cache.get("catalog", "key") == {"title": "catalog"}

    def test_overwrite(self, cache):
        cache.put_catalog("9780441172719", {"title": "Dune"})
        cache.put_catalog("9780441172719", {"title": "Dune (Deluxe)"})

        assert cache.get_catalog("9780441172719") == {"title": "Dune (Deluxe)"}
        assert cache.count(CacheNamespace.CATALOG) == 1

    def test_unserializable_value_is_ignored(self, cache):
        cache.put_vision("abc", [object()])

        assert cache.get_vision("abc") is None

    def test_remove_and_clear(self, cache):
        cache.put_vision("a", [])
        cache.put_vision("b", [])
        cache.put_catalog("isbn", {})

        cache.remove(CacheNamespace.VISION, "a")
        assert not cache.contains(CacheNamespace.VISION, "a")
        assert cache.contains(CacheNamespace.VISION, "b")

        cache.clear(CacheNamespace.VISION)
        assert cache.count(CacheNamespace.VISION) == 0
        assert cache.count(CacheNamespace.CATALOG) == 1

        cache.clear()
        assert cache.count() == 0


class TestPersistentCache:
    """Tests for the SQLite-backed cache."""

    def test_survives_restart(self, tmp_path):
        path = tmp_path / "cache.db"
        ResponseCache(path).put_vision("abc", [{"title": "Dune"}])

        reopened = ResponseCache(path)

        assert reopened.get_vision("abc") == [{"title": "Dune"}]
        assert reopened.count() == 1

    def test_memory_layer_is_bounded(self, tmp_path):
        cache = ResponseCache(tmp_path / "cache.db", memory_cache_size=2)
        for key in ["a", "b", "c"]:
            cache.put_vision(key, [key])

        assert len(cache._memory) == 2
        # Evicted from memory, still on disk
        assert cache.get_vision("a") == ["a"]

    def test_corrupt_row_is_a_miss(self, tmp_path):
        path = tmp_path / "cache.db"
        ResponseCache(path)

        conn = sqlite3.connect(path)
        conn.execute(
            "INSERT INTO response_cache (namespace, key, response, cached_at) VALUES (?, ?, ?, ?)",
            ("vision", "abc", "{not json", 0),
        )
        conn.commit()
        conn.close()

        assert ResponseCache(path).get_vision("abc") is None

    def test_clear_namespace_on_disk(self, tmp_path):
        path = tmp_path / "cache.db"
        cache = ResponseCache(path)
        cache.put_vision("abc", [])
        cache.put_catalog("isbn", {"title": "Dune"})

        cache.clear(CacheNamespace.VISION)

        reopened = ResponseCache(path)
        assert reopened.get_vision("abc") is None
        assert reopened.get_catalog("isbn") == {"title": "Dune"}
