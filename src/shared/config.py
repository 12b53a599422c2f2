"""Runtime settings for the tile fetcher.

Defaults come from shared.constants; a ``.env`` file and ``TILES_*``
environment variables override them.
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator, model_validator

from shared.constants import (
    CACHE_CAPACITY_BYTES,
    CACHE_MAX_AGE,
    CACHE_MAX_STALE,
    ENV_PREFIX,
    HTTP_TIMEOUT_DEFAULT,
    TILE_SERVER_BASE_URL,
)

logger = logging.getLogger(__name__)


class CachePolicySettings(BaseModel):
    """Cache freshness policy and capacity ceiling."""

    max_age: timedelta = CACHE_MAX_AGE
    max_stale: timedelta = CACHE_MAX_STALE
    cache_capacity_bytes: int = CACHE_CAPACITY_BYTES

    @field_validator('max_age', 'max_stale')
    @classmethod
    def validate_durations(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            msg = 'duration must not be negative'
            raise ValueError(msg)
        return v

    @field_validator('cache_capacity_bytes')
    @classmethod
    def validate_capacity(cls, v: int) -> int:
        v = int(v)
        if v <= 0:
            msg = 'cache_capacity_bytes must be positive'
            raise ValueError(msg)
        return v

    @model_validator(mode='after')
    def validate_stale_ceiling(self) -> CachePolicySettings:
        if self.max_stale < self.max_age:
            msg = 'max_stale must be greater than or equal to max_age'
            raise ValueError(msg)
        return self

    @property
    def max_age_s(self) -> int:
        return int(self.max_age.total_seconds())

    @property
    def max_stale_s(self) -> int:
        return int(self.max_stale.total_seconds())


class FetcherSettings(BaseModel):
    """Everything the fetcher needs at construction time."""

    model_config = {'extra': 'ignore'}

    base_url: str = TILE_SERVER_BASE_URL
    # None disables the on-disk cache
    cache_dir: Path | None = None
    request_timeout_s: float = HTTP_TIMEOUT_DEFAULT
    policy: CachePolicySettings = CachePolicySettings()

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.strip().rstrip('/')
        if not v.startswith(('http://', 'https://')):
            msg = f'base_url must be an http(s) URL: {v!r}'
            raise ValueError(msg)
        return v

    @field_validator('request_timeout_s')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        v = float(v)
        if v <= 0:
            msg = 'request_timeout_s must be positive'
            raise ValueError(msg)
        return v


def _env(name: str) -> str | None:
    value = os.getenv(f'{ENV_PREFIX}{name}', '').strip()
    return value or None


def load_settings(env_file: str | Path | None = None) -> FetcherSettings:
    """Build settings from an optional .env file and TILES_* variables.

    Recognised variables: TILES_BASE_URL, TILES_CACHE_DIR,
    TILES_REQUEST_TIMEOUT_S, TILES_CACHE_MAX_AGE_HOURS,
    TILES_CACHE_MAX_STALE_HOURS, TILES_CACHE_CAPACITY_MB.
    """
    if env_file is not None:
        path = Path(env_file)
        if path.exists():
            load_dotenv(path)
            logger.info('Loaded environment from %s', path)
        else:
            logger.debug('Env file %s not found, using process environment', path)

    values: dict[str, object] = {}
    policy: dict[str, object] = {}

    base_url = _env('BASE_URL')
    if base_url is not None:
        values['base_url'] = base_url
    cache_dir = _env('CACHE_DIR')
    if cache_dir is not None:
        values['cache_dir'] = Path(cache_dir).expanduser()
    timeout = _env('REQUEST_TIMEOUT_S')
    if timeout is not None:
        values['request_timeout_s'] = timeout

    max_age = _env('CACHE_MAX_AGE_HOURS')
    if max_age is not None:
        policy['max_age'] = timedelta(hours=float(max_age))
    max_stale = _env('CACHE_MAX_STALE_HOURS')
    if max_stale is not None:
        policy['max_stale'] = timedelta(hours=float(max_stale))
    capacity = _env('CACHE_CAPACITY_MB')
    if capacity is not None:
        policy['cache_capacity_bytes'] = int(float(capacity) * 1024 * 1024)

    if policy:
        values['policy'] = CachePolicySettings(**policy)
    return FetcherSettings(**values)
