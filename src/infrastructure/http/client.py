from __future__ import annotations

import os
import ssl
from pathlib import Path

import aiohttp
import certifi

from shared.constants import HTTP_TIMEOUT_DEFAULT, TILE_CACHE_DIR, USER_AGENT


def resolve_cache_dir(cache_dir: str | Path | None = None) -> Path:
    """Directory for the on-disk tile cache.

    An explicit absolute path wins; relative paths are placed under
    LOCALAPPDATA when set, otherwise under the user's home directory.
    """
    raw_dir = Path(cache_dir if cache_dir is not None else TILE_CACHE_DIR).expanduser()
    if raw_dir.is_absolute():
        return raw_dir

    local = os.getenv('LOCALAPPDATA')
    if local:
        return (Path(local) / raw_dir).resolve()
    # Fallback: user's home directory
    return (Path.home() / raw_dir).resolve()


def make_ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


def make_http_session(
    timeout_s: float = HTTP_TIMEOUT_DEFAULT,
) -> aiohttp.ClientSession:
    """Create the aiohttp session used for tile requests.

    Caching is done by tiles.fetcher, so this is a plain session with a
    certifi SSL context and a total request timeout.
    """
    connector = aiohttp.TCPConnector(ssl=make_ssl_context())
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    return aiohttp.ClientSession(
        connector=connector,
        timeout=timeout,
        headers={'User-Agent': USER_AGENT},
    )
