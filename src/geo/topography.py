"""Web Mercator slippy-map tile math."""

import math

from shared.constants import (
    MERCATOR_MAX_LAT_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
    XY_EPSILON,
)


def tiles_per_side(zoom: int) -> int:
    """Number of tiles along one axis at the given zoom (2^zoom)."""
    return 1 << zoom


def clamp_latitude(lat_deg: float) -> float:
    """Clamp latitude to the square part of the Web Mercator projection."""
    return min(max(lat_deg, -MERCATOR_MAX_LAT_DEG), MERCATOR_MAX_LAT_DEG)


def clamp_longitude(lng_deg: float) -> float:
    return min(max(lng_deg, -WORLD_LNG_HALF_SPAN_DEG), WORLD_LNG_HALF_SPAN_DEG)


def lng_to_tile_x(lng_deg: float, zoom: int) -> float:
    """Fractional tile column for a longitude."""
    n = tiles_per_side(zoom)
    return (lng_deg + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG * n


def lat_to_tile_y(lat_deg: float, zoom: int) -> float:
    """Fractional tile row for a latitude (row index grows southward)."""
    n = tiles_per_side(zoom)
    lat_rad = math.radians(lat_deg)
    merc = math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad))
    return (1.0 - merc / math.pi) / 2.0 * n


def _to_index(value: float, zoom: int, *, upper: bool) -> int:
    # Edges within the snap tolerance of a tile boundary snap to it, so a max
    # edge on the boundary belongs to the tile before it
    n = tiles_per_side(zoom)
    tolerance = XY_EPSILON * n
    value = value - tolerance if upper else value + tolerance
    idx = math.floor(value)
    return min(max(idx, 0), n - 1)


def tile_column(lng_deg: float, zoom: int, *, upper: bool = False) -> int:
    """Tile column containing a longitude, clamped to [0, 2^zoom)."""
    return _to_index(lng_to_tile_x(clamp_longitude(lng_deg), zoom), zoom, upper=upper)


def tile_row(lat_deg: float, zoom: int, *, upper: bool = False) -> int:
    """Tile row containing a latitude, clamped to [0, 2^zoom)."""
    return _to_index(lat_to_tile_y(clamp_latitude(lat_deg), zoom), zoom, upper=upper)


def tile_xy_to_latlng(x: float, y: float, zoom: int) -> tuple[float, float]:
    """Inverse transform: tile-space (x, y) -> WGS84 (lat, lng) of that point.

    Integer arguments give the north-west corner of tile (x, y).
    """
    n = tiles_per_side(zoom)
    lng = x / n * WORLD_LNG_SPAN_DEG - WORLD_LNG_HALF_SPAN_DEG
    lat = math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * y / n))))
    return lat, lng


def tile_bounds(x: int, y: int, zoom: int) -> tuple[float, float, float, float]:
    """Geographic bounds of a tile as (min_lat, min_lng, max_lat, max_lng)."""
    max_lat, min_lng = tile_xy_to_latlng(x, y, zoom)
    min_lat, max_lng = tile_xy_to_latlng(x + 1, y + 1, zoom)
    return min_lat, min_lng, max_lat, max_lng
