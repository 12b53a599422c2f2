"""Value types shared by the tile generator, fetcher and orchestrator."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


@dataclass(frozen=True)
class GeoBoundingBox:
    """Geographic region in WGS84 degrees."""

    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> GeoBoundingBox:
        """Envelope of a sequence of (lat, lon) vertices, e.g. viewport corners."""
        lats: list[float] = []
        lons: list[float] = []
        for lat, lon in points:
            lats.append(lat)
            lons.append(lon)
        if not lats:
            msg = 'at least one point is required'
            raise ValueError(msg)
        return cls(
            min_lat=min(lats),
            min_lon=min(lons),
            max_lat=max(lats),
            max_lon=max(lons),
        )


@dataclass(frozen=True)
class ZoomRange:
    """Inclusive range of zoom levels."""

    min: int
    max: int

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.min, self.max + 1))

    def __contains__(self, zoom: object) -> bool:
        return isinstance(zoom, int) and self.min <= zoom <= self.max


@dataclass(frozen=True, order=True)
class TileCoordinate:
    """One raster tile in the slippy-map scheme."""

    zoom: int
    x: int
    y: int


class FailureReason(enum.Enum):
    NETWORK = 'network'
    HTTP_STATUS = 'http_status'
    NO_CONTENT = 'no_content'
    CACHE_MISS = 'cache_miss'
    CANCELLED = 'cancelled'


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a single tile fetch.

    Exactly one of ``data`` and ``reason`` is set. ``from_cache`` marks bytes
    served from the on-disk cache, ``stale`` marks cached bytes older than
    the max-age policy.
    """

    url: str
    data: bytes | None = None
    reason: FailureReason | None = None
    from_cache: bool = False
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.data is not None

    @classmethod
    def success(
        cls,
        url: str,
        data: bytes,
        *,
        from_cache: bool = False,
        stale: bool = False,
    ) -> FetchResult:
        return cls(url=url, data=data, from_cache=from_cache, stale=stale)

    @classmethod
    def failure(cls, url: str, reason: FailureReason) -> FetchResult:
        return cls(url=url, reason=reason)
