"""Tile addressing, caching and fetching.

This module provides:
- TileAddressGenerator: region + zoom range -> tile URLs
- TileCache: SQLite-based response storage with LRU eviction
- CacheWriter: background writer thread for non-blocking cache writes
- CachingFetcher: offline-aware HTTP fetcher backed by the cache
- CachedTileSource: tile source with an explicit lifecycle for rendering hosts
- Prefetcher: batch fetch orchestrator
"""

from tiles.cache import CacheEntry, CacheStats, TileCache
from tiles.coverage import TileAddressGenerator
from tiles.errors import (
    CacheIOError,
    InvalidRangeError,
    InvalidRegionError,
    NetworkError,
    NoContentError,
    PrefetchAlreadyRunningError,
    TileError,
)
from tiles.fetcher import CachingFetcher, url_fingerprint
from tiles.models import (
    FailureReason,
    FetchResult,
    GeoBoundingBox,
    TileCoordinate,
    ZoomRange,
)
from tiles.prefetch import Prefetcher, PrefetchReport
from tiles.source import CachedTileSource, TileInfo, TileSource, TileSourceStatus
from tiles.writer import CacheWriter, TileWriteRequest

__all__ = [
    'CacheEntry',
    'CacheIOError',
    'CacheStats',
    'CacheWriter',
    'CachedTileSource',
    'CachingFetcher',
    'FailureReason',
    'FetchResult',
    'GeoBoundingBox',
    'InvalidRangeError',
    'InvalidRegionError',
    'NetworkError',
    'NoContentError',
    'PrefetchAlreadyRunningError',
    'PrefetchReport',
    'Prefetcher',
    'TileAddressGenerator',
    'TileCache',
    'TileCoordinate',
    'TileError',
    'TileInfo',
    'TileSource',
    'TileSourceStatus',
    'TileWriteRequest',
    'ZoomRange',
    'url_fingerprint',
]
