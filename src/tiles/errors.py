"""Error taxonomy for tile addressing and fetching."""


class TileError(Exception):
    """Base exception for tile errors."""


class InvalidRegionError(TileError, ValueError):
    """Region bounds are inverted or not finite."""


class InvalidRangeError(TileError, ValueError):
    """Zoom range is inverted or outside the supported levels."""


class NetworkError(TileError):
    """Transport failure, timeout or unexpected HTTP status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class NoContentError(TileError):
    """Response lacked a body or a content type."""


class CacheIOError(TileError):
    """On-disk cache is unavailable or failed an operation."""


class PrefetchAlreadyRunningError(TileError):
    """A prefetch run is already in progress on this orchestrator."""
