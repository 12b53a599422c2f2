"""
Diagnostic utilities.

Process memory and cache-volume disk usage, logged during long prefetch runs.
"""

import logging
from pathlib import Path
from typing import Any

import psutil

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


def get_memory_info() -> dict[str, Any]:
    """Get process and system memory usage in MB."""
    try:
        rss_vms = psutil.Process().memory_info()
        system_memory = psutil.virtual_memory()
    except psutil.Error as e:
        return {'error': f'Failed to get memory info: {e}'}

    return {
        'process_rss_mb': round(rss_vms.rss / _MB, 2),
        'process_vms_mb': round(rss_vms.vms / _MB, 2),
        'system_total_mb': round(system_memory.total / _MB, 2),
        'system_available_mb': round(system_memory.available / _MB, 2),
        'system_used_percent': system_memory.percent,
    }


def get_disk_info(path: str | Path) -> dict[str, Any]:
    """Free space on the volume holding ``path`` (the nearest existing parent)."""
    probe = Path(path)
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    try:
        usage = psutil.disk_usage(str(probe))
    except OSError as e:
        return {'error': f'Failed to get disk info for {probe}: {e}'}
    return {
        'disk_total_mb': round(usage.total / _MB, 2),
        'disk_free_mb': round(usage.free / _MB, 2),
        'disk_used_percent': usage.percent,
    }


def log_memory_usage(context: str = '', cache_dir: str | Path | None = None) -> None:
    """Quick memory usage logging, plus free disk space next to the cache."""
    memory_info = get_memory_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Memory usage%s: RSS=%sMB, Available=%sMB',
        context_label,
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
    )
    if cache_dir is None:
        return
    disk_info = get_disk_info(cache_dir)
    logger.info(
        'Cache volume%s: %s free=%sMB (%s%% used)',
        context_label,
        cache_dir,
        disk_info.get('disk_free_mb', 'N/A'),
        disk_info.get('disk_used_percent', 'N/A'),
    )
