"""HTTP client infrastructure."""
from infrastructure.http.client import (
    make_http_session,
    make_ssl_context,
    resolve_cache_dir,
)
from infrastructure.http.reachability import (
    ReachabilityProvider,
    SocketReachability,
    StaticReachability,
)

__all__ = [
    'ReachabilityProvider',
    'SocketReachability',
    'StaticReachability',
    'make_http_session',
    'make_ssl_context',
    'resolve_cache_dir',
]
