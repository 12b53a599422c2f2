"""Shared utilities and helpers."""
from shared.config import CachePolicySettings, FetcherSettings, load_settings
from shared.diagnostics import get_disk_info, get_memory_info, log_memory_usage

__all__ = [
    'CachePolicySettings',
    'FetcherSettings',
    'get_disk_info',
    'get_memory_info',
    'load_settings',
    'log_memory_usage',
]
