"""Tests for reachability providers."""

import socket
from unittest.mock import MagicMock, patch

import pytest

from infrastructure.http.reachability import SocketReachability, StaticReachability


class TestStaticReachability:
    def test_default_reachable(self):
        assert StaticReachability().is_reachable()

    def test_toggle(self):
        provider = StaticReachability(reachable=False)
        assert not provider.is_reachable()
        provider.reachable = True
        assert provider.is_reachable()


class TestSocketReachability:
    """Tests for the TCP probe."""

    def test_for_https_url(self):
        provider = SocketReachability.for_url('https://a.tile.openstreetmap.org')
        assert provider.host == 'a.tile.openstreetmap.org'
        assert provider.port == 443

    def test_for_http_url_with_port(self):
        provider = SocketReachability.for_url('http://localhost:8080/tiles', timeout=0.5)
        assert (provider.host, provider.port, provider.timeout) == ('localhost', 8080, 0.5)

    def test_for_plain_http_url(self):
        assert SocketReachability.for_url('http://tiles.example.com').port == 80

    def test_for_url_without_host(self):
        with pytest.raises(ValueError):
            SocketReachability.for_url('/relative/path')

    def test_reachable(self):
        with patch('socket.create_connection', return_value=MagicMock()) as mock_connect:
            assert SocketReachability('tiles.example.com', 443, 1.0).is_reachable()
        mock_connect.assert_called_once_with(('tiles.example.com', 443), timeout=1.0)

    def test_unreachable(self):
        with patch('socket.create_connection', side_effect=socket.timeout('timed out')):
            assert not SocketReachability('tiles.example.com').is_reachable()

    def test_dns_failure(self):
        with patch('socket.create_connection', side_effect=socket.gaierror('no such host')):
            assert not SocketReachability('nowhere.invalid').is_reachable()

    def test_local_listener(self):
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(('127.0.0.1', 0))
        server.listen(1)
        try:
            port = server.getsockname()[1]
            assert SocketReachability('127.0.0.1', port, 1.0).is_reachable()
        finally:
            server.close()
