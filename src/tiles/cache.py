"""SQLite-based tile cache with LRU eviction.

This module provides TileCache class for storing and retrieving tile
responses keyed by request URL, bounded by a total size ceiling.
"""

from __future__ import annotations

import functools
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from shared.constants import CACHE_CAPACITY_BYTES, TILE_CACHE_DB_NAME
from tiles.errors import CacheIOError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

_T = TypeVar('_T')


@dataclass
class CacheEntry:
    """A cached tile response."""

    url: str
    data: bytes
    content_type: str
    etag: str | None
    last_modified: str | None
    fetched_at: float
    last_used_at: float
    size_bytes: int

    def age_s(self, now: float | None = None) -> float:
        """Seconds since the response was fetched or last revalidated."""
        if now is None:
            now = time.time()
        return max(0.0, now - self.fetched_at)


@dataclass
class CacheStats:
    """Statistics about the tile cache."""

    total_tiles: int
    total_size_bytes: int
    max_size_bytes: int
    oldest_tile: float | None
    newest_tile: float | None


def _guarded(method: Callable[..., _T]) -> Callable[..., _T]:
    """Serialize access to the connection and map storage faults to CacheIOError."""

    @functools.wraps(method)
    def wrapper(self: TileCache, *args: Any, **kwargs: Any) -> _T:
        with self._lock:
            if self._conn is None:
                msg = f'TileCache at {self.cache_dir} is closed'
                raise CacheIOError(msg)
            try:
                return method(self, *args, **kwargs)
            except (sqlite3.Error, OSError) as e:
                msg = f'tile cache {method.__name__} failed: {e}'
                raise CacheIOError(msg) from e

    return wrapper


class TileCache:
    """SQLite-based tile cache keyed by request URL.

    Features:
    - WAL mode for concurrent reads
    - One connection shared by all threads, calls serialized by a lock
    - LRU eviction once total size exceeds max_size_bytes
    - Automatic last_used_at update on reads

    Usage:
        cache = TileCache(cache_dir, max_size_bytes=250 * 1024 * 1024)
        cache.put(url, data=tile_bytes, content_type='image/png')
        entry = cache.get(url)
        cache.close()
    """

    def __init__(
        self,
        cache_dir: str | Path,
        max_size_bytes: int = CACHE_CAPACITY_BYTES,
    ) -> None:
        """Initialize tile cache.

        Args:
            cache_dir: Directory for the cache database.
            max_size_bytes: Total size ceiling for cached tile bodies.

        Raises:
            CacheIOError: If the directory or database cannot be opened.
        """
        if max_size_bytes <= 0:
            msg = 'max_size_bytes must be positive'
            raise ValueError(msg)
        self.cache_dir = Path(cache_dir)
        self.max_size_bytes = max_size_bytes
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.cache_dir / TILE_CACHE_DB_NAME),
                check_same_thread=False,
            )
            conn.execute('PRAGMA journal_mode=WAL')
            conn.execute('PRAGMA synchronous=NORMAL')
            self._init_schema(conn)
        except (sqlite3.Error, OSError) as e:
            msg = f'cannot open tile cache at {self.cache_dir}: {e}'
            raise CacheIOError(msg) from e
        self._conn = conn
        logger.info(
            'TileCache initialized at %s (capacity %.1f MB)',
            self.cache_dir,
            max_size_bytes / 1024 / 1024,
        )

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize database schema."""
        conn.executescript('''
            CREATE TABLE IF NOT EXISTS tiles (
                url TEXT PRIMARY KEY,
                tile_data BLOB NOT NULL,
                content_type TEXT NOT NULL,
                etag TEXT,
                last_modified TEXT,
                fetched_at REAL NOT NULL,
                last_used_at REAL NOT NULL,
                size_bytes INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_tiles_last_used ON tiles(last_used_at);
        ''')
        conn.commit()

    @staticmethod
    def _row_to_entry(row: tuple) -> CacheEntry:
        return CacheEntry(
            url=row[0],
            data=row[1],
            content_type=row[2],
            etag=row[3],
            last_modified=row[4],
            fetched_at=row[5],
            last_used_at=row[6],
            size_bytes=row[7],
        )

    @_guarded
    def get(self, url: str) -> CacheEntry | None:
        """Get a cached response.

        Updates last_used_at timestamp for LRU tracking.

        Returns:
            CacheEntry, or None if not found.
        """
        row = self._conn.execute(
            '''SELECT url, tile_data, content_type, etag, last_modified,
                      fetched_at, last_used_at, size_bytes
               FROM tiles WHERE url = ?''',
            (url,),
        ).fetchone()
        if row is None:
            return None

        now = time.time()
        self._conn.execute('UPDATE tiles SET last_used_at = ? WHERE url = ?', (now, url))
        self._conn.commit()
        entry = self._row_to_entry(row)
        entry.last_used_at = now
        return entry

    @_guarded
    def get_info(self, url: str) -> CacheEntry | None:
        """Get a cached response without updating last_used_at."""
        row = self._conn.execute(
            '''SELECT url, tile_data, content_type, etag, last_modified,
                      fetched_at, last_used_at, size_bytes
               FROM tiles WHERE url = ?''',
            (url,),
        ).fetchone()
        return None if row is None else self._row_to_entry(row)

    @_guarded
    def exists(self, url: str) -> bool:
        cursor = self._conn.execute('SELECT 1 FROM tiles WHERE url = ?', (url,))
        return cursor.fetchone() is not None

    @_guarded
    def put(
        self,
        url: str,
        data: bytes,
        content_type: str,
        etag: str | None = None,
        last_modified: str | None = None,
        fetched_at: float | None = None,
    ) -> None:
        """Store a response, replacing any previous entry for the URL.

        Args:
            url: Request URL.
            data: Response body.
            content_type: Response content type.
            etag: ETag validator, if the server sent one.
            last_modified: Last-Modified validator, if the server sent one.
            fetched_at: Timestamp when the response was fetched. Defaults to now.
        """
        self.put_batch([(url, data, content_type, etag, last_modified, fetched_at)])

    @_guarded
    def put_batch(
        self,
        responses: Sequence[tuple[str, bytes, str, str | None, str | None, float | None]],
    ) -> None:
        """Store multiple responses in a single transaction.

        Args:
            responses: Sequence of
                (url, data, content_type, etag, last_modified, fetched_at);
                a fetched_at of None means now.
        """
        if not responses:
            return
        now = time.time()
        self._conn.executemany(
            '''INSERT OR REPLACE INTO tiles
               (url, tile_data, content_type, etag, last_modified,
                fetched_at, last_used_at, size_bytes)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)''',
            [
                (url, data, ctype, etag, lm, now if fetched is None else fetched, now, len(data))
                for url, data, ctype, etag, lm, fetched in responses
            ],
        )
        self._conn.commit()
        self._evict_locked()

    @_guarded
    def touch(self, url: str, fetched_at: float | None = None) -> bool:
        """Mark an entry as revalidated (e.g. after HTTP 304).

        Returns:
            True if the entry exists.
        """
        now = time.time()
        cursor = self._conn.execute(
            'UPDATE tiles SET fetched_at = ?, last_used_at = ? WHERE url = ?',
            (fetched_at if fetched_at is not None else now, now, url),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    @_guarded
    def delete(self, url: str) -> bool:
        """Delete an entry.

        Returns:
            True if the entry was deleted.
        """
        cursor = self._conn.execute('DELETE FROM tiles WHERE url = ?', (url,))
        self._conn.commit()
        return cursor.rowcount > 0

    def _total_size(self) -> int:
        row = self._conn.execute('SELECT COALESCE(SUM(size_bytes), 0) FROM tiles').fetchone()
        return int(row[0])

    def _evict_locked(self) -> int:
        total = self._total_size()
        if total <= self.max_size_bytes:
            return 0

        bytes_to_free = total - self.max_size_bytes
        bytes_freed = 0
        victims: list[tuple[str]] = []
        # Oldest last_used_at first
        for url, size in self._conn.execute(
            'SELECT url, size_bytes FROM tiles ORDER BY last_used_at ASC'
        ):
            if bytes_freed >= bytes_to_free:
                break
            victims.append((url,))
            bytes_freed += size

        self._conn.executemany('DELETE FROM tiles WHERE url = ?', victims)
        self._conn.commit()
        logger.info(
            'LRU cleanup: evicted %d tiles, freed %.1f MB',
            len(victims),
            bytes_freed / 1024 / 1024,
        )
        return bytes_freed

    @_guarded
    def evict_to_capacity(self) -> int:
        """Remove least recently used tiles to stay under the size ceiling.

        Returns:
            Number of bytes freed.
        """
        return self._evict_locked()

    @_guarded
    def get_stats(self) -> CacheStats:
        count, size, oldest, newest = self._conn.execute(
            '''SELECT COUNT(*), COALESCE(SUM(size_bytes), 0),
                      MIN(fetched_at), MAX(fetched_at)
               FROM tiles'''
        ).fetchone()
        return CacheStats(
            total_tiles=count,
            total_size_bytes=size,
            max_size_bytes=self.max_size_bytes,
            oldest_tile=oldest,
            newest_tile=newest,
        )

    @_guarded
    def clear(self) -> int:
        """Delete every entry.

        Returns:
            Number of tiles deleted.
        """
        cursor = self._conn.execute('DELETE FROM tiles')
        self._conn.commit()
        logger.info('Cleared tile cache: %d tiles deleted', cursor.rowcount)
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info('TileCache closed')

    def __enter__(self) -> TileCache:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
