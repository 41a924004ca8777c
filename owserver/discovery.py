"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Discovery of the EDS OWServer ENet-2 on the local network.

As stated in the OWServer manual, a UDP broadcast of 'D' on port 30303 is
answered by every gateway on the subnet.
"""

# std libraries
import socket

# external libraries
from udi_interface import LOGGER

# personal libraries
from owserver.errors import DiscoveryTimeout, TransportError

DISCOVERY_PORT = 30303
DISCOVERY_REQUEST = b'D'
BROADCAST_ADDRESS = '255.255.255.255'
DEFAULT_DISCOVERY_TIMEOUT = 3.0


def discover(timeout: float = DEFAULT_DISCOVERY_TIMEOUT, port: int = DISCOVERY_PORT) -> str:
    """Broadcast a discovery request and wait for the first gateway to answer.

    The broadcast itself is received as well, so single byte datagrams are
    skipped. Any longer datagram is a reply and its sender is the gateway.

    Args:
        timeout: Seconds to wait for each datagram.
        port: UDP port to broadcast to and listen on.

    Returns:
        IP address of the gateway.

    Raises:
        DiscoveryTimeout: No reply within the timeout.
        TransportError: The socket could not be opened or used.
    """
    LOGGER.info("Starting OWServer discovery")
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as ex:
        raise TransportError(f"Unable to open discovery socket: {ex}") from ex

    with sock:
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind(('', port))
            sock.settimeout(timeout)
            sock.sendto(DISCOVERY_REQUEST, (BROADCAST_ADDRESS, port))
            while True:
                data, (addr, _port) = sock.recvfrom(1024)
                if len(data) > 1:
                    LOGGER.info(f"OWServer found at {addr}: {data!r}")
                    return addr
        except socket.timeout as ex:
            LOGGER.info("Discovery ended without results")
            raise DiscoveryTimeout(f"No OWServer replied within {timeout} seconds") from ex
        except OSError as ex:
            raise TransportError(f"Discovery failed: {ex}") from ex
