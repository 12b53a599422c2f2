"""Tile coverage: region + zoom range -> tile coordinates and URLs."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from geo.topography import tile_column, tile_row
from shared.constants import (
    MAX_ZOOM,
    MIN_ZOOM,
    TILE_PATH_TEMPLATE,
    TILE_SERVER_BASE_URL,
)
from tiles.errors import InvalidRangeError, InvalidRegionError
from tiles.models import GeoBoundingBox, TileCoordinate, ZoomRange

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

logger = logging.getLogger(__name__)


def validate_zoom_range(zoom_range: ZoomRange) -> None:
    """Raise InvalidRangeError unless MIN_ZOOM <= min <= max <= MAX_ZOOM."""
    if zoom_range.min > zoom_range.max:
        msg = f'zoom range is inverted: min={zoom_range.min} > max={zoom_range.max}'
        raise InvalidRangeError(msg)
    for zoom in (zoom_range.min, zoom_range.max):
        if not MIN_ZOOM <= zoom <= MAX_ZOOM:
            msg = f'zoom {zoom} is outside the supported range [{MIN_ZOOM}, {MAX_ZOOM}]'
            raise InvalidRangeError(msg)


def validate_region(region: GeoBoundingBox) -> None:
    """Raise InvalidRegionError for NaN or inverted bounds."""
    bounds = (region.min_lat, region.min_lon, region.max_lat, region.max_lon)
    if any(math.isnan(v) for v in bounds):
        msg = f'region has NaN bounds: {region}'
        raise InvalidRegionError(msg)
    if region.min_lat > region.max_lat:
        msg = f'min_lat {region.min_lat} > max_lat {region.max_lat}'
        raise InvalidRegionError(msg)
    if region.min_lon > region.max_lon:
        msg = f'min_lon {region.min_lon} > max_lon {region.max_lon}'
        raise InvalidRegionError(msg)


def tile_span(region: GeoBoundingBox, zoom: int) -> tuple[int, int, int, int]:
    """
    Inclusive tile index rectangle covering a region at one zoom.

    Returns:
        (col_min, col_max, row_min, row_max). The northern bound gives the
        minimum row, the southern bound the maximum row.

    """
    col_min = tile_column(region.min_lon, zoom)
    col_max = max(col_min, tile_column(region.max_lon, zoom, upper=True))
    row_min = tile_row(region.max_lat, zoom)
    row_max = max(row_min, tile_row(region.min_lat, zoom, upper=True))
    return col_min, col_max, row_min, row_max


class TileAddressGenerator:
    """Converts regions and zoom ranges into tile coordinates and URLs.

    Usage:
        generator = TileAddressGenerator('https://a.tile.openstreetmap.org')
        urls = generator.urls(region, ZoomRange(1, 18))
        total = generator.url_count(region, ZoomRange(1, 18))
    """

    def __init__(self, base_url: str = TILE_SERVER_BASE_URL) -> None:
        self.base_url = base_url.rstrip('/')

    def tile_url(self, coord: TileCoordinate) -> str:
        """Format a coordinate as {base_url}/{zoom}/{x}/{y}.png."""
        return self.base_url + TILE_PATH_TEMPLATE.format(
            zoom=coord.zoom, x=coord.x, y=coord.y
        )

    def iter_coordinates(
        self,
        region: GeoBoundingBox,
        zoom_range: ZoomRange,
    ) -> Iterator[TileCoordinate]:
        """Yield every tile of a region, zoom ascending, then column, then row."""
        validate_zoom_range(zoom_range)
        validate_region(region)
        for zoom in zoom_range:
            col_min, col_max, row_min, row_max = tile_span(region, zoom)
            for x in range(col_min, col_max + 1):
                for y in range(row_min, row_max + 1):
                    yield TileCoordinate(zoom=zoom, x=x, y=y)

    def iter_urls(
        self,
        regions: Iterable[GeoBoundingBox],
        zoom_range: ZoomRange,
    ) -> Iterator[str]:
        """Yield the URLs of several regions in order, skipping duplicates."""
        seen: set[str] = set()
        for region in regions:
            for coord in self.iter_coordinates(region, zoom_range):
                url = self.tile_url(coord)
                if url in seen:
                    continue
                seen.add(url)
                yield url

    def urls(
        self,
        region: GeoBoundingBox,
        zoom_range: ZoomRange,
        limit: int | None = None,
    ) -> frozenset[str]:
        """
        URLs of every tile covering a region across a zoom range.

        Args:
            region: WGS84 bounding box
            zoom_range: Inclusive zoom levels
            limit: Stop as soon as this many URLs were produced. The result is
                then a partial set meant for previews and cost estimates.

        Returns:
            Immutable set of tile URLs

        """
        if limit is not None and limit <= 0:
            msg = f'limit must be positive, got {limit}'
            raise ValueError(msg)

        result: set[str] = set()
        for coord in self.iter_coordinates(region, zoom_range):
            result.add(self.tile_url(coord))
            if limit is not None and len(result) >= limit:
                logger.debug('Stopped URL enumeration at limit %d', limit)
                break
        return frozenset(result)

    def urls_for_regions(
        self,
        regions: Sequence[GeoBoundingBox],
        zoom_range: ZoomRange,
    ) -> frozenset[str]:
        """Union of the tile URLs of several regions."""
        return frozenset(self.iter_urls(regions, zoom_range))

    def url_count(self, region: GeoBoundingBox, zoom_range: ZoomRange) -> int:
        """Number of tiles urls() would return, without building them."""
        validate_zoom_range(zoom_range)
        validate_region(region)
        count = 0
        for zoom in zoom_range:
            col_min, col_max, row_min, row_max = tile_span(region, zoom)
            count += (col_max - col_min + 1) * (row_max - row_min + 1)
        return count
