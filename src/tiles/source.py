"""Tile sources for rendering hosts.

A tile source is initialized once by its owner and then asked for tiles by
(level, column, row). Status changes are pushed to registered listeners.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.constants import (
    SOURCE_MAX_ZOOM,
    SOURCE_MIN_ZOOM,
    TILE_DPI,
    TILE_RESOLUTIONS,
    TILE_SCALES,
    TILE_SERVER_BASE_URL,
    TILE_SIZE,
    WEB_MERCATOR_HALF_EXTENT_M,
    WEB_MERCATOR_WKID,
)
from tiles.coverage import TileAddressGenerator, validate_zoom_range
from tiles.errors import InvalidRangeError
from tiles.models import TileCoordinate, ZoomRange

if TYPE_CHECKING:
    from collections.abc import Callable

    from tiles.fetcher import CachingFetcher

logger = logging.getLogger(__name__)


class TileSourceStatus(enum.Enum):
    CREATED = 'created'
    READY = 'ready'
    ERROR = 'error'


@dataclass(frozen=True)
class TileInfo:
    """Tiling scheme description handed to the rendering host."""

    wkid: int
    origin: tuple[float, float]
    full_extent: tuple[float, float, float, float]
    resolutions: tuple[float, ...]
    scales: tuple[float, ...]
    dpi: int
    tile_width: int
    tile_height: int

    @property
    def levels(self) -> int:
        return len(self.resolutions)


def build_tile_info(zoom_range: ZoomRange) -> TileInfo:
    """Web Mercator tiling scheme with one level per zoom up to zoom_range.max."""
    validate_zoom_range(zoom_range)
    levels = zoom_range.max + 1
    half = WEB_MERCATOR_HALF_EXTENT_M
    return TileInfo(
        wkid=WEB_MERCATOR_WKID,
        origin=(-half, half),
        full_extent=(-half, -half, half, half),
        resolutions=TILE_RESOLUTIONS[:levels],
        scales=TILE_SCALES[:levels],
        dpi=TILE_DPI,
        tile_width=TILE_SIZE,
        tile_height=TILE_SIZE,
    )


class TileSource(ABC):
    """Base class for tile sources with a created -> ready | error lifecycle."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._status = TileSourceStatus.CREATED
        self._listeners: list[Callable[[TileSource, TileSourceStatus], None]] = []

    @property
    def status(self) -> TileSourceStatus:
        return self._status

    def add_status_listener(
        self,
        listener: Callable[[TileSource, TileSourceStatus], None],
    ) -> None:
        self._listeners.append(listener)

    def _change_status(self, status: TileSourceStatus) -> None:
        if status is self._status:
            return
        self._status = status
        logger.info('Tile source %s is now %s', self.name, status.value)
        for listener in list(self._listeners):
            listener(self, status)

    def initialize(self) -> None:
        """Prepare the source; moves to READY, or ERROR if preparation fails."""
        if self._status is TileSourceStatus.READY:
            return
        try:
            self._initialize()
        except Exception:
            logger.exception('Failed to initialize tile source %s', self.name)
            self._change_status(TileSourceStatus.ERROR)
        else:
            self._change_status(TileSourceStatus.READY)

    @abstractmethod
    def _initialize(self) -> None:
        """Source-specific preparation; raise to signal an error."""

    @abstractmethod
    async def get_tile(self, level: int, col: int, row: int) -> bytes:
        """Tile bytes, or empty bytes when the tile is unavailable."""


class CachedTileSource(TileSource):
    """Slippy-map tile source backed by a CachingFetcher."""

    def __init__(
        self,
        name: str,
        fetcher: CachingFetcher | None,
        base_url: str = TILE_SERVER_BASE_URL,
        zoom_range: ZoomRange = ZoomRange(SOURCE_MIN_ZOOM, SOURCE_MAX_ZOOM),
    ) -> None:
        super().__init__(name)
        self.fetcher = fetcher
        self.zoom_range = zoom_range
        self.generator = TileAddressGenerator(base_url)
        self.tile_info: TileInfo | None = None

    def _initialize(self) -> None:
        try:
            self.tile_info = build_tile_info(self.zoom_range)
        except InvalidRangeError as e:
            msg = f'minimum or maximum zoom levels are not set correctly: {e}'
            raise InvalidRangeError(msg) from e

    async def get_tile(self, level: int, col: int, row: int) -> bytes:
        if self.status is not TileSourceStatus.READY:
            logger.warning('Tile %d/%d/%d requested from %s source', level, col, row, self.status.value)
            return b''
        if self.fetcher is None:
            logger.error('No fetcher for tile source %s', self.name)
            return b''
        if level not in self.zoom_range:
            logger.debug('Tile level %d outside %s, returning empty tile', level, self.zoom_range)
            return b''

        url = self.generator.tile_url(TileCoordinate(zoom=level, x=col, y=row))
        result = await self.fetcher.fetch(url)
        return result.data if result.data is not None else b''
