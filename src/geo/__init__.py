"""Geo module - Web Mercator tile math."""

from .topography import (
    lat_to_tile_y,
    lng_to_tile_x,
    tile_bounds,
    tile_column,
    tile_row,
    tile_xy_to_latlng,
    tiles_per_side,
)

__all__ = [
    'lat_to_tile_y',
    'lng_to_tile_x',
    'tile_bounds',
    'tile_column',
    'tile_row',
    'tile_xy_to_latlng',
    'tiles_per_side',
]
