"""Tests for TileCache."""

from __future__ import annotations

import sqlite3
import tempfile
import time
from pathlib import Path

import pytest

from tiles.cache import CacheStats, TileCache
from tiles.errors import CacheIOError

URL = 'https://tiles.example.com/15/100/200.png'


@pytest.fixture
def temp_cache_dir():
    """Create temporary directory for cache."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def cache(temp_cache_dir):
    """Create TileCache instance."""
    tc = TileCache(cache_dir=temp_cache_dir)
    yield tc
    tc.close()


class TestTileCache:
    """Tests for TileCache class."""

    def test_init_creates_directory(self, temp_cache_dir):
        """Test that init creates cache directory."""
        cache_dir = temp_cache_dir / 'tiles'
        cache = TileCache(cache_dir=cache_dir)
        assert cache_dir.exists()
        assert (cache_dir / 'tiles.db').exists()
        cache.close()

    def test_init_rejects_non_positive_capacity(self, temp_cache_dir):
        with pytest.raises(ValueError):
            TileCache(cache_dir=temp_cache_dir, max_size_bytes=0)

    def test_init_unusable_directory(self, temp_cache_dir):
        """A file where the directory should be is reported as CacheIOError."""
        blocker = temp_cache_dir / 'blocker'
        blocker.write_bytes(b'')
        with pytest.raises(CacheIOError):
            TileCache(cache_dir=blocker / 'tiles')

    def test_put_and_get(self, cache):
        """Test basic put and get operations."""
        cache.put(URL, b'test tile data', 'image/png', etag='"abc"', last_modified='Mon')
        entry = cache.get(URL)
        assert entry is not None
        assert entry.data == b'test tile data'
        assert entry.content_type == 'image/png'
        assert entry.etag == '"abc"'
        assert entry.last_modified == 'Mon'
        assert entry.size_bytes == len(b'test tile data')

    def test_get_nonexistent_returns_none(self, cache):
        """Test that get returns None for nonexistent tile."""
        assert cache.get(URL) is None
        assert cache.get_info(URL) is None

    def test_exists(self, cache):
        """Test exists method."""
        assert not cache.exists(URL)
        cache.put(URL, b'data', 'image/png')
        assert cache.exists(URL)

    def test_put_updates_existing(self, cache):
        """Test that put overwrites existing tile."""
        cache.put(URL, b'old', 'image/png')
        cache.put(URL, b'new', 'image/png')
        assert cache.get(URL).data == b'new'
        assert cache.get_stats().total_tiles == 1

    def test_urls_are_distinct_keys(self, cache):
        cache.put(URL, b'a', 'image/png')
        cache.put(URL.replace('/200.png', '/201.png'), b'b', 'image/png')
        assert cache.get(URL).data == b'a'
        assert cache.get_stats().total_tiles == 2

    def test_fetched_at_preserved(self, cache):
        old = time.time() - 3600
        cache.put(URL, b'data', 'image/png', fetched_at=old)
        entry = cache.get(URL)
        assert entry.fetched_at == pytest.approx(old)
        assert entry.age_s() == pytest.approx(3600, abs=5)

    def test_get_updates_last_used(self, cache):
        cache.put(URL, b'data', 'image/png')
        before = cache.get_info(URL).last_used_at
        time.sleep(0.01)
        cache.get(URL)
        assert cache.get_info(URL).last_used_at > before

    def test_get_info_does_not_update_last_used(self, cache):
        cache.put(URL, b'data', 'image/png')
        before = cache.get_info(URL).last_used_at
        time.sleep(0.01)
        assert cache.get_info(URL).last_used_at == before

    def test_touch_refreshes_fetched_at(self, cache):
        cache.put(URL, b'data', 'image/png', fetched_at=time.time() - 3600)
        assert cache.touch(URL)
        assert cache.get_info(URL).age_s() < 60

    def test_touch_missing(self, cache):
        assert not cache.touch(URL)

    def test_delete(self, cache):
        """Test delete method."""
        cache.put(URL, b'data', 'image/png')
        assert cache.delete(URL)
        assert not cache.exists(URL)
        assert not cache.delete(URL)

    def test_put_batch(self, cache):
        """Test batch insert."""
        responses = [
            (f'https://tiles.example.com/5/{i}/0.png', b'x' * i, 'image/png', None, None, None)
            for i in range(1, 11)
        ]
        cache.put_batch(responses)
        stats = cache.get_stats()
        assert stats.total_tiles == 10
        assert stats.total_size_bytes == sum(range(1, 11))

    def test_put_batch_empty(self, cache):
        cache.put_batch([])
        assert cache.get_stats().total_tiles == 0

    def test_get_stats(self, cache):
        """Test get_stats method."""
        cache.put(URL, b'12345', 'image/png')
        stats = cache.get_stats()
        assert isinstance(stats, CacheStats)
        assert stats.total_tiles == 1
        assert stats.total_size_bytes == 5
        assert stats.oldest_tile is not None
        assert stats.newest_tile is not None

    def test_clear(self, cache):
        cache.put(URL, b'data', 'image/png')
        assert cache.clear() == 1
        assert cache.get_stats().total_tiles == 0

    def test_persists_across_instances(self, temp_cache_dir):
        with TileCache(cache_dir=temp_cache_dir) as first:
            first.put(URL, b'kept', 'image/png')
        with TileCache(cache_dir=temp_cache_dir) as second:
            assert second.get(URL).data == b'kept'


class TestEviction:
    """Tests for LRU eviction against the size ceiling."""

    def test_evicts_least_recently_used(self, temp_cache_dir):
        with TileCache(cache_dir=temp_cache_dir, max_size_bytes=30) as cache:
            cache.put('https://t/1/0/0.png', b'a' * 10, 'image/png')
            time.sleep(0.01)
            cache.put('https://t/1/0/1.png', b'b' * 10, 'image/png')
            time.sleep(0.01)
            cache.put('https://t/1/1/0.png', b'c' * 10, 'image/png')
            time.sleep(0.01)
            # Using the first tile makes the second one the oldest
            cache.get('https://t/1/0/0.png')
            time.sleep(0.01)
            cache.put('https://t/1/1/1.png', b'd' * 10, 'image/png')

            assert cache.exists('https://t/1/0/0.png')
            assert not cache.exists('https://t/1/0/1.png')
            assert cache.exists('https://t/1/1/1.png')
            assert cache.get_stats().total_size_bytes <= 30

    def test_under_capacity_nothing_evicted(self, cache):
        cache.put(URL, b'data', 'image/png')
        assert cache.evict_to_capacity() == 0
        assert cache.exists(URL)


class TestClosedCache:
    """Operations on a closed cache fail with CacheIOError."""

    def test_close_is_idempotent(self, temp_cache_dir):
        cache = TileCache(cache_dir=temp_cache_dir)
        cache.close()
        cache.close()

    def test_get_after_close(self, temp_cache_dir):
        cache = TileCache(cache_dir=temp_cache_dir)
        cache.close()
        with pytest.raises(CacheIOError):
            cache.get(URL)

    def test_put_after_close(self, temp_cache_dir):
        cache = TileCache(cache_dir=temp_cache_dir)
        cache.close()
        with pytest.raises(CacheIOError):
            cache.put(URL, b'data', 'image/png')

    @pytest.mark.parametrize(
        'call',
        [
            lambda c: c.get_info(URL),
            lambda c: c.exists(URL),
            lambda c: c.touch(URL),
            lambda c: c.delete(URL),
            lambda c: c.put_batch([]),
            lambda c: c.evict_to_capacity(),
            lambda c: c.get_stats(),
            lambda c: c.clear(),
        ],
    )
    def test_every_operation_after_close(self, temp_cache_dir, call):
        cache = TileCache(cache_dir=temp_cache_dir)
        cache.close()
        with pytest.raises(CacheIOError, match='closed'):
            call(cache)

    def test_sqlite_errors_are_wrapped(self, cache):
        cache._conn.execute('DROP TABLE tiles')
        with pytest.raises(CacheIOError) as exc_info:
            cache.get(URL)
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)
