"""Tests for tiles.models value types."""

import dataclasses

import pytest

from tiles.models import FailureReason, FetchResult, GeoBoundingBox, TileCoordinate, ZoomRange


class TestGeoBoundingBox:
    """Tests for GeoBoundingBox."""

    def test_from_points_envelope(self):
        box = GeoBoundingBox.from_points([(10.0, 20.0), (-5.0, 30.0), (3.0, -1.0)])
        assert box == GeoBoundingBox(min_lat=-5.0, min_lon=-1.0, max_lat=10.0, max_lon=30.0)

    def test_from_single_point(self):
        box = GeoBoundingBox.from_points([(1.0, 2.0)])
        assert box == GeoBoundingBox(1.0, 2.0, 1.0, 2.0)

    def test_from_no_points(self):
        with pytest.raises(ValueError):
            GeoBoundingBox.from_points([])

    def test_frozen(self):
        box = GeoBoundingBox(0.0, 0.0, 1.0, 1.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            box.min_lat = 5.0


class TestZoomRange:
    """Tests for ZoomRange."""

    def test_iteration_is_inclusive(self):
        assert list(ZoomRange(3, 6)) == [3, 4, 5, 6]

    def test_single_level(self):
        assert list(ZoomRange(4, 4)) == [4]

    def test_contains(self):
        zoom_range = ZoomRange(2, 5)
        assert 2 in zoom_range
        assert 5 in zoom_range
        assert 6 not in zoom_range
        assert 'three' not in zoom_range


class TestTileCoordinate:
    def test_ordering(self):
        coords = [TileCoordinate(2, 1, 0), TileCoordinate(1, 5, 5), TileCoordinate(2, 0, 3)]
        assert sorted(coords)[0] == TileCoordinate(1, 5, 5)

    def test_hashable(self):
        assert len({TileCoordinate(1, 0, 0), TileCoordinate(1, 0, 0)}) == 1


class TestFetchResult:
    """Tests for FetchResult constructors."""

    def test_success(self):
        result = FetchResult.success('u', b'png', from_cache=True, stale=True)
        assert result.ok
        assert result.data == b'png'
        assert result.reason is None
        assert result.from_cache
        assert result.stale

    def test_failure(self):
        result = FetchResult.failure('u', FailureReason.CACHE_MISS)
        assert not result.ok
        assert result.data is None
        assert result.reason is FailureReason.CACHE_MISS
        assert not result.from_cache
