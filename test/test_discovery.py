"""
Test suite for OWServer discovery.
"""

import socket

import pytest
from unittest.mock import MagicMock, patch
from owserver import discovery
from owserver.errors import DiscoveryTimeout, TransportError


class TestDiscover:
    """Tests for discover."""

    @pytest.fixture
    def mock_socket(self):
        """Patch the socket constructor and return the socket instance."""
        with patch("owserver.discovery.socket.socket") as mock_ctor:
            sock = MagicMock()
            mock_ctor.return_value = sock
            yield sock

    def test_broadcasts_request(self, mock_socket):
        """A single 'D' is broadcast on port 30303."""
        mock_socket.recvfrom.return_value = (b"OWServer reply", ("192.168.1.20", 30303))

        discovery.discover(timeout=2.0)

        mock_socket.bind.assert_called_once_with(("", 30303))
        mock_socket.settimeout.assert_called_once_with(2.0)
        mock_socket.sendto.assert_called_once_with(b"D", ("255.255.255.255", 30303))
        mock_socket.setsockopt.assert_any_call(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)

    def test_skips_own_broadcast(self, mock_socket):
        """The one byte echo of the request is not a reply."""
        mock_socket.recvfrom.side_effect = [
            (b"D", ("192.168.1.5", 30303)),
            (b"EDS OWServer-Enet2", ("192.168.1.20", 30303)),
        ]

        assert discovery.discover() == "192.168.1.20"
        assert mock_socket.recvfrom.call_count == 2

    def test_timeout(self, mock_socket):
        """No reply raises DiscoveryTimeout."""
        mock_socket.recvfrom.side_effect = socket.timeout("timed out")

        with pytest.raises(DiscoveryTimeout):
            discovery.discover(timeout=0.1)

    def test_socket_error(self, mock_socket):
        """Other socket errors raise TransportError."""
        mock_socket.bind.side_effect = OSError("address in use")

        with pytest.raises(TransportError):
            discovery.discover()

    def test_socket_closed(self, mock_socket):
        """The socket is closed after discovery."""
        mock_socket.recvfrom.return_value = (b"reply", ("10.0.0.2", 30303))

        discovery.discover()

        mock_socket.__exit__.assert_called_once()
