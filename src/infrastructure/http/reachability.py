"""Network reachability providers.

The fetcher polls a provider before every request; providers must not cache
their answer across calls.
"""

from __future__ import annotations

import logging
import socket
from typing import Protocol
from urllib.parse import urlsplit

from shared.constants import REACHABILITY_PORT, REACHABILITY_TIMEOUT_S

logger = logging.getLogger(__name__)


class ReachabilityProvider(Protocol):
    def is_reachable(self) -> bool: ...


class StaticReachability:
    """Reachability fixed by the caller, e.g. a user-selected offline mode."""

    def __init__(self, reachable: bool = True) -> None:
        self.reachable = reachable

    def is_reachable(self) -> bool:
        return self.reachable


class SocketReachability:
    """Reachable when a TCP connection to the tile host can be opened."""

    def __init__(
        self,
        host: str,
        port: int = REACHABILITY_PORT,
        timeout: float = REACHABILITY_TIMEOUT_S,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

    @classmethod
    def for_url(cls, url: str, timeout: float = REACHABILITY_TIMEOUT_S) -> SocketReachability:
        """Probe the host (and scheme default port) of a tile server URL."""
        parts = urlsplit(url)
        if not parts.hostname:
            msg = f'URL has no host: {url!r}'
            raise ValueError(msg)
        port = parts.port or (443 if parts.scheme == 'https' else 80)
        return cls(parts.hostname, port, timeout)

    def is_reachable(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except OSError as e:
            logger.debug('Host %s:%d unreachable: %s', self.host, self.port, e)
            return False
