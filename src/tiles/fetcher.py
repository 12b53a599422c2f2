"""HTTP tile fetcher with an offline-aware on-disk cache.

Online, cached tiles younger than ``max_age`` are served directly, older ones
are revalidated over the network, and tiles younger than ``max_stale`` are
served when the network fails. Offline, only the cache is consulted.
Failures never raise: they come back as ``FetchResult.failure``.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import TYPE_CHECKING

import aiohttp
from aiohttp import hdrs

from shared.config import CachePolicySettings
from shared.constants import CACHE_ONLY_MAX_STALE_S, HTTP_NOT_MODIFIED, HTTP_OK
from tiles.cache import TileCache
from tiles.errors import CacheIOError, NetworkError, NoContentError
from tiles.models import FailureReason, FetchResult
from tiles.writer import CacheWriter

if TYPE_CHECKING:
    from infrastructure.http.reachability import ReachabilityProvider
    from shared.config import FetcherSettings
    from tiles.cache import CacheEntry

logger = logging.getLogger(__name__)

FORCE_CACHE_CONTROL = f'only-if-cached, max-stale={CACHE_ONLY_MAX_STALE_S}'


def url_fingerprint(url: str) -> str:
    """32-character hex MD5 of the UTF-8 URL, for log correlation only."""
    return hashlib.md5(url.encode('utf-8'), usedforsecurity=False).hexdigest()


def network_cache_control(policy: CachePolicySettings) -> str:
    """Cache-Control request header for the network-first policy."""
    return f'max-age={policy.max_age_s}, max-stale={policy.max_stale_s}'


class CachingFetcher:
    """Fetches tile bytes, choosing a cache policy from current reachability.

    Safe to share between concurrent tasks; the cache serializes its own
    writes. Runs blocking work (reachability probe, SQLite) in worker threads
    so the event loop is never blocked.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        reachability: ReachabilityProvider,
        *,
        cache: TileCache | None = None,
        writer: CacheWriter | None = None,
        policy: CachePolicySettings | None = None,
    ) -> None:
        self.session = session
        self.reachability = reachability
        self.cache = cache
        self.writer = writer
        self.policy = policy or CachePolicySettings()
        self._owns_cache = False
        self._stats = {
            'network': 0,
            'revalidated': 0,
            'cache_hits': 0,
            'stale_hits': 0,
            'offline_hits': 0,
            'offline_misses': 0,
            'failures': 0,
            'cancelled': 0,
        }

    @classmethod
    def create(
        cls,
        settings: FetcherSettings,
        session: aiohttp.ClientSession,
        reachability: ReachabilityProvider,
        *,
        background_writes: bool = True,
    ) -> CachingFetcher:
        """Build a fetcher and the cache it owns from settings.

        An unusable cache directory is logged and the fetcher falls back to
        direct network fetches without caching.
        """
        cache: TileCache | None = None
        writer: CacheWriter | None = None
        if settings.cache_dir is not None:
            try:
                cache = TileCache(settings.cache_dir, settings.policy.cache_capacity_bytes)
            except CacheIOError:
                logger.exception('Tile cache unavailable, fetching without cache')
        if cache is not None and background_writes:
            writer = CacheWriter(cache)
            writer.start()

        fetcher = cls(session, reachability, cache=cache, writer=writer, policy=settings.policy)
        fetcher._owns_cache = True
        return fetcher

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    def close(self) -> None:
        """Flush pending cache writes and close the cache if this fetcher owns it."""
        if self.writer is not None:
            self.writer.stop()
        if self._owns_cache and self.cache is not None:
            self.cache.close()

    async def fetch(self, url: str) -> FetchResult:
        """Return tile bytes for a URL, or a failure with its reason."""
        fingerprint = url_fingerprint(url)
        try:
            reachable = await asyncio.to_thread(self.reachability.is_reachable)
            entry = await self._lookup(url)
            if reachable:
                logger.debug('ONLINE - fetch %s (%s)', url, network_cache_control(self.policy))
                return await self._fetch_online(url, entry, fingerprint)
            logger.debug('CACHE - fetch %s (%s)', url, FORCE_CACHE_CONTROL)
            return self._fetch_cache_only(url, entry, fingerprint)
        except asyncio.CancelledError:
            self._stats['cancelled'] += 1
            logger.info('Fetch cancelled: %s. Key: %s', url, fingerprint)
            return FetchResult.failure(url, FailureReason.CANCELLED)

    async def _lookup(self, url: str) -> CacheEntry | None:
        if self.cache is None:
            return None
        try:
            return await asyncio.to_thread(self.cache.get, url)
        except CacheIOError as e:
            logger.warning('Cache read failed for %s, continuing without cache: %s', url, e)
            return None

    def _fetch_cache_only(
        self,
        url: str,
        entry: CacheEntry | None,
        fingerprint: str,
    ) -> FetchResult:
        if entry is None:
            self._stats['offline_misses'] += 1
            logger.info('NO DATA offline: %s. Key: %s', url, fingerprint)
            return FetchResult.failure(url, FailureReason.CACHE_MISS)
        self._stats['offline_hits'] += 1
        return FetchResult.success(
            url,
            entry.data,
            from_cache=True,
            stale=entry.age_s() > self.policy.max_age_s,
        )

    async def _fetch_online(
        self,
        url: str,
        entry: CacheEntry | None,
        fingerprint: str,
    ) -> FetchResult:
        if entry is not None and entry.age_s() <= self.policy.max_age_s:
            self._stats['cache_hits'] += 1
            return FetchResult.success(url, entry.data, from_cache=True)

        headers = {hdrs.CACHE_CONTROL: network_cache_control(self.policy)}
        if entry is not None:
            if entry.etag:
                headers[hdrs.IF_NONE_MATCH] = entry.etag
            if entry.last_modified:
                headers[hdrs.IF_MODIFIED_SINCE] = entry.last_modified

        try:
            async with self.session.get(url, headers=headers) as resp:
                if resp.status == HTTP_NOT_MODIFIED and entry is not None:
                    await self._touch(url)
                    self._stats['revalidated'] += 1
                    return FetchResult.success(url, entry.data, from_cache=True)
                if resp.status != HTTP_OK:
                    msg = f'HTTP {resp.status}'
                    raise NetworkError(msg, status=resp.status)

                content_type = resp.headers.get(hdrs.CONTENT_TYPE)
                if not content_type:
                    msg = f'no content type (HTTP {resp.status} {resp.reason})'
                    raise NoContentError(msg)
                data = await resp.read()
                if not data:
                    msg = 'empty body'
                    raise NoContentError(msg)
                etag = resp.headers.get(hdrs.ETAG)
                last_modified = resp.headers.get(hdrs.LAST_MODIFIED)
        except NoContentError as e:
            self._stats['failures'] += 1
            logger.warning('NO DATA %s. Key: %s (%s)', url, fingerprint, e)
            return FetchResult.failure(url, FailureReason.NO_CONTENT)
        except NetworkError as e:
            return self._stale_fallback(url, entry, fingerprint, e)
        except (aiohttp.ClientError, TimeoutError) as e:
            return self._stale_fallback(url, entry, fingerprint, NetworkError(repr(e)))

        self._stats['network'] += 1
        await self._store(url, data, content_type, etag, last_modified)
        return FetchResult.success(url, data)

    def _stale_fallback(
        self,
        url: str,
        entry: CacheEntry | None,
        fingerprint: str,
        error: NetworkError,
    ) -> FetchResult:
        if entry is not None and entry.age_s() <= self.policy.max_stale_s:
            self._stats['stale_hits'] += 1
            logger.warning(
                'Network failed for %s (%s), serving cached copy aged %.0fs',
                url,
                error,
                entry.age_s(),
            )
            return FetchResult.success(url, entry.data, from_cache=True, stale=True)

        self._stats['failures'] += 1
        logger.warning('NO DATA %s. Key: %s (%s)', url, fingerprint, error)
        reason = FailureReason.HTTP_STATUS if error.status is not None else FailureReason.NETWORK
        return FetchResult.failure(url, reason)

    async def _store(
        self,
        url: str,
        data: bytes,
        content_type: str,
        etag: str | None,
        last_modified: str | None,
    ) -> None:
        if self.cache is None:
            return
        fetched_at = time.time()
        if self.writer is not None and self.writer.is_running():
            if self.writer.put(url, data, content_type, etag, last_modified, fetched_at):
                return
            logger.debug('Write queue full, storing %s directly', url)
        try:
            await asyncio.to_thread(
                self.cache.put, url, data, content_type, etag, last_modified, fetched_at
            )
        except CacheIOError as e:
            logger.warning('Cache write failed for %s: %s', url, e)

    async def _touch(self, url: str) -> None:
        if self.cache is None:
            return
        try:
            await asyncio.to_thread(self.cache.touch, url)
        except CacheIOError as e:
            logger.warning('Cache revalidation update failed for %s: %s', url, e)
