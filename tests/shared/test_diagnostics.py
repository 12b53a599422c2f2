"""Tests for shared.diagnostics helpers."""

import logging

import psutil

import shared.diagnostics as diagnostics


def test_get_memory_info_direct():
    info = diagnostics.get_memory_info()
    assert 'process_rss_mb' in info
    assert 'system_available_mb' in info


def test_log_memory_usage_direct(caplog):
    with caplog.at_level(logging.INFO):
        diagnostics.log_memory_usage('test context')
    assert 'Memory usage (test context)' in caplog.text


def test_get_memory_info_with_psutil(monkeypatch):
    """get_memory_info should convert psutil byte counts to MB."""

    class DummyProcess:
        def memory_info(self):
            return type('MemInfo', (), {'rss': 100 * 1024 * 1024, 'vms': 200 * 1024 * 1024})()

    class DummyVirtualMemory:
        total = 1024 * 1024 * 1024
        available = 512 * 1024 * 1024
        percent = 50.0

    monkeypatch.setattr(psutil, 'Process', DummyProcess)
    monkeypatch.setattr(psutil, 'virtual_memory', lambda: DummyVirtualMemory)

    info = diagnostics.get_memory_info()
    assert info['process_rss_mb'] == 100.0
    assert info['process_vms_mb'] == 200.0
    assert info['system_total_mb'] == 1024.0
    assert info['system_available_mb'] == 512.0
    assert info['system_used_percent'] == 50.0


def test_get_memory_info_psutil_error(monkeypatch, caplog):
    def _raise():
        raise psutil.AccessDenied()

    monkeypatch.setattr(psutil, 'Process', _raise)
    info = diagnostics.get_memory_info()
    assert 'error' in info

    with caplog.at_level(logging.INFO):
        diagnostics.log_memory_usage()
    assert 'RSS=N/A' in caplog.text


def test_get_disk_info_existing_dir(tmp_path):
    info = diagnostics.get_disk_info(tmp_path)
    assert info['disk_free_mb'] > 0


def test_get_disk_info_walks_up_to_existing_parent(tmp_path):
    info = diagnostics.get_disk_info(tmp_path / 'not' / 'yet' / 'created')
    assert 'disk_free_mb' in info


def test_log_memory_usage_with_cache_dir(tmp_path, caplog):
    with caplog.at_level(logging.INFO):
        diagnostics.log_memory_usage('prefetch', tmp_path)
    assert 'Cache volume (prefetch)' in caplog.text


def test_get_disk_info_error(monkeypatch, tmp_path):
    def _raise(path):
        raise PermissionError('denied')

    monkeypatch.setattr(psutil, 'disk_usage', _raise)
    assert 'error' in diagnostics.get_disk_info(tmp_path)
