"""Tests for infrastructure.http.client module."""

import ssl
from pathlib import Path

import aiohttp
import pytest

from infrastructure.http.client import make_http_session, make_ssl_context, resolve_cache_dir
from shared.constants import TILE_CACHE_DIR, USER_AGENT


class TestResolveCacheDir:
    """Tests for resolve_cache_dir function."""

    def test_absolute_path_kept(self, tmp_path):
        assert resolve_cache_dir(tmp_path) == tmp_path

    def test_relative_under_localappdata(self, monkeypatch, tmp_path):
        monkeypatch.setenv('LOCALAPPDATA', str(tmp_path))
        assert resolve_cache_dir('tiles') == (tmp_path / 'tiles').resolve()

    def test_default_under_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv('LOCALAPPDATA', raising=False)
        monkeypatch.setattr(Path, 'home', classmethod(lambda cls: tmp_path))
        assert resolve_cache_dir() == (tmp_path / TILE_CACHE_DIR).resolve()

    def test_returns_path(self):
        assert isinstance(resolve_cache_dir(), Path)


class TestMakeHttpSession:
    """Tests for make_http_session function."""

    def test_ssl_context(self):
        assert isinstance(make_ssl_context(), ssl.SSLContext)

    @pytest.mark.asyncio
    async def test_creates_session(self):
        session = make_http_session(5.0)
        try:
            assert isinstance(session, aiohttp.ClientSession)
            assert session.timeout.total == 5.0
            assert session.headers['User-Agent'] == USER_AGENT
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with make_http_session() as session:
            assert not session.closed
        assert session.closed
