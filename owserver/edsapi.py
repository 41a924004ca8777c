"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Client for the EDS OWServer-V2 gateway.

The gateway publishes the details of itself and its connected 1-wire devices
on /details.xml and accepts writes on /devices.htm. An address starting with
file:// reads a saved details document instead, for simulation and testing.
"""

# std libraries
import threading
import time
from typing import List, Optional
from xml.etree import ElementTree as ET

# external libraries
import requests
from udi_interface import LOGGER

# personal libraries
from owserver import discovery
from owserver.errors import FileReadError, TransportError, WriteFailure
from owserver.parser import OneWireNode, parse_nodes
from owserver.xmltree import XmlNode, decode, local_name

FILE_PREFIX = 'file://'
DETAILS_PATH = '/details.xml'
WRITE_PATH = '/devices.htm'
REQUEST_TIMEOUT = 1.0


class EdsAPI:
    """Read and write access to an OWServer gateway.

    Attributes:
        address (str): Gateway address, file:// simulation path, or empty
            to discover the gateway on first use.
        login_name (str): Basic auth login name, empty when not needed.
        password (str): Basic auth password.
        discovery_timeout (float): Seconds to wait for a discovery reply.
    """

    def __init__(self, address: str = '', login_name: str = '', password: str = '',
                 discovery_timeout: float = discovery.DEFAULT_DISCOVERY_TIMEOUT):
        self.address = address or ''
        self.login_name = login_name or ''
        self.password = password or ''
        self.discovery_timeout = discovery_timeout
        # prevent concurrent discovery and reads
        self._read_lock = threading.Lock()


    @property
    def last_address(self) -> str:
        """The configured or discovered gateway address."""
        return self.address


    @property
    def is_simulation(self) -> bool:
        return self.address.startswith(FILE_PREFIX)


    def _auth(self):
        if self.login_name:
            return (self.login_name, self.password)
        return None


    def _base_url(self) -> str:
        if self.address.startswith(('http://', 'https://')):
            return self.address.rstrip('/')
        return f"http://{self.address}"


    def discover(self) -> str:
        """Discover the gateway on the local network and return its address."""
        return discovery.discover(self.discovery_timeout)


    def read_eds(self) -> XmlNode:
        """Read the gateway details document.

        When no address is configured the gateway is discovered first and
        the discovered address is kept for later reads.

        Returns:
            The decoded details document.

        Raises:
            DiscoveryTimeout: No address configured and no gateway found.
            FileReadError: The simulation file can't be read.
            TransportError: The gateway can't be reached.
            DecodeError: The response is not valid XML.
        """
        with self._read_lock:
            if not self.address:
                self.address = self.discover()

            if self.is_simulation:
                filename = self.address[len(FILE_PREFIX):]
                try:
                    with open(filename, 'rb') as file:
                        buffer = file.read()
                except OSError as ex:
                    LOGGER.error(f"Unable to read EDS file from {filename}: {ex}")
                    raise FileReadError(f"Unable to read {filename}: {ex}") from ex
                return decode(buffer)

            url = self._base_url() + DETAILS_PATH
            try:
                resp = requests.get(url, auth=self._auth(), timeout=REQUEST_TIMEOUT)
                resp.raise_for_status()
            except requests.RequestException as ex:
                LOGGER.error(f"Unable to read EDS gateway from {url}: {ex}")
                raise TransportError(f"Unable to read {url}: {ex}") from ex
            return decode(resp.content)


    def poll_nodes(self) -> List[OneWireNode]:
        """Read the gateway and return its nodes, with the read latency on the gateway node."""
        start_time = time.monotonic()
        root_node = self.read_eds()
        latency = time.monotonic() - start_time
        return parse_nodes(root_node, latency, True)


    def write_data(self, rom_id: str, variable: str, value: str) -> None:
        """Write a value to a variable of a 1-wire device.

        This requests devices.htm?rom={rom_id}&variable={variable}&value={value}.
        The response body is not interpreted.

        Raises:
            WriteFailure: The request failed.
        """
        if self.is_simulation:
            self._write_simulation(rom_id, variable, value)
            return

        url = self._base_url() + WRITE_PATH
        params = {'rom': rom_id, 'variable': variable, 'value': value}
        LOGGER.info(f"EdsAPI.write_data: URL: {url} {params}")
        try:
            resp = requests.get(url, params=params, auth=self._auth(), timeout=REQUEST_TIMEOUT)
            resp.raise_for_status()
        except requests.RequestException as ex:
            LOGGER.error(f"Unable to write data to EDS gateway at {url}: {ex}")
            raise WriteFailure(f"Writing {variable} of {rom_id} failed: {ex}") from ex


    def _write_simulation(self, rom_id: str, variable: str, value: str) -> None:
        """Apply a write to the simulation document, like the gateway would."""
        filename = self.address[len(FILE_PREFIX):]
        with self._read_lock:
            try:
                tree = ET.parse(filename)
            except (OSError, ET.ParseError) as ex:
                raise WriteFailure(f"Unable to update {filename}: {ex}") from ex

            target: Optional[ET.Element] = None
            for elem in tree.getroot().iter():
                children = {local_name(child.tag): child for child in elem}
                rom = children.get('ROMId')
                if rom is not None and (rom.text or '') == rom_id:
                    target = children.get(variable)
                    break
            if target is None or len(target):
                raise WriteFailure(f"Device {rom_id} has no variable {variable}")

            target.text = str(value)
            try:
                tree.write(filename, encoding='utf-8', xml_declaration=True)
            except OSError as ex:
                raise WriteFailure(f"Unable to update {filename}: {ex}") from ex
        LOGGER.info(f"EdsAPI.write_data: simulated {rom_id} {variable}={value}")
