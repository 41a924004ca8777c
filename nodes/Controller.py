"""OWServer Polyglot NodeServer for EISY/Polisy.

This module provides the Controller class for the udi-owserver-pg3x NodeServer,
which publishes the devices of an EDS OWServer 1-wire gateway as things on an
MQTT based IoT hub.

The Controller loads the configuration, owns the gateway client, the hub
connection and the binding, and reports the binding status to the ISY.

Copyright: (C) 2025
"""

# std libraries
import yaml, time, logging
from threading import Event
from typing import Any, Optional

# external libraries
from udi_interface import Node, LOGGER, Custom, LOG_HANDLER

# personal libraries
from owserver.binding import BindingConfig, OWServerBinding
from owserver.edsapi import EdsAPI
from owserver.errors import OWServerError
from owserver.hubclient import HubClient

DEFAULT_CONFIG = {
    'owserver_address': '',
    'login_name': '',
    'password': '',
    'td_interval': 3600,
    'value_interval': 60,
    'publish_td': False,
    'discovery_timeout': 3,
    'stale_after': 0,
    'client_id': 'owserver',
    'zone': 'local',
    'mqtt_server': 'localhost',
    'mqtt_port': 1884,
    'mqtt_user': 'admin',
    'mqtt_password': 'admin',
}

TRUE_VALUES = ('true', 'yes', 'on', '1')
FALSE_VALUES = ('false', 'no', 'off', '0')


class Controller(Node):
    """Controller class for the OWServer Polyglot NodeServer.

    Attributes:
        id (str): Unique identifier for the controller node ('owctrl').
        hb (int): Heartbeat toggle reported to the ISY.
        ready_event (Event): Set once the binding is running.
        params_event (Event): Set once custom parameters are loaded.
        general (dict): 'general' section of the optional YAML configfile.
        config (dict): Effective configuration after the fallbacks.
        eds_api (EdsAPI): Gateway client.
        hub (HubClient): IoT hub MQTT connection.
        binding (OWServerBinding): Poll/publish binding.
    """
    id = 'owctrl'

    def __init__(self, poly, primary, address, name):
        """Initialize the Controller node and subscribe to the Polyglot events.

        Args:
            poly: Polyglot interface instance for communication with EISY/Polisy.
            primary: Primary node address (typically the controller itself).
            address: Unique address for this controller node.
            name: Human-readable name for the controller node.
        """
        super().__init__(poly, primary, address, name)

        self.hb = 0 # heartbeat

        self.ready_event = Event()
        self.params_event = Event()
        self.discovery_in = False

        self.general = {}
        self.config = {}
        self.eds_api: Optional[EdsAPI] = None
        self.hub: Optional[HubClient] = None
        self.binding: Optional[OWServerBinding] = None

        # Create data storage classes
        self.Notices         = Custom(poly, 'notices')
        self.Parameters      = Custom(poly, 'customparams')

        # Subscribe to various events from the Interface class.
        self.poly.subscribe(self.poly.START,             self.start, address)
        self.poly.subscribe(self.poly.POLL,              self.poll)
        self.poly.subscribe(self.poly.LOGLEVEL,          self.handleLevelChange)
        self.poly.subscribe(self.poly.CUSTOMPARAMS,      self.parameterHandler)
        self.poly.subscribe(self.poly.STOP,              self.stop)
        self.poly.subscribe(self.poly.DISCOVER,          self.discover_cmd)

        # Tell the interface we have subscribed to all the events we need.
        # Once we call ready(), the interface will start publishing data.
        self.poly.ready()

        # Tell the interface we exist.
        self.poly.addNode(self, conn_status='ST')


    def start(self):
        """Load the configuration, connect the hub and start the binding.

        On any failure the controller status is set to 2 and a notice tells
        the user what to check.
        """
        LOGGER.info(f"OWServer PG3 NodeServer {self.poly.serverdata['version']}")
        self.Notices.clear()
        self.Notices['hello'] = 'Start-up'
        self.setDriver('ST', 1, report = True, force = True)

        # Send the profile files to the ISY if neccessary or version changed.
        self.poly.updateProfile()

        # Send the default custom parameters documentation file to Polyglot
        self.poly.setCustomParamsDoc()

        # Initializing a heartbeat
        self.heartbeat()

        LOGGER.warning('Waiting for custom parameters...')
        self.Notices['waiting'] = 'Waiting on valid configuration'
        self.params_event.wait(timeout=60)
        if not self.params_event.is_set():
            LOGGER.error("Timed out waiting for parameters")
            self.setDriver('ST', 2) # start-up failed
            self.Notices['error'] = 'Error start-up timeout.  Check config & restart'
            return

        if not self.checkParams():
            LOGGER.error(f'Configuration invalid!!! exit {self.name}')
            self.Notices['error'] = 'Error in configuration.  Check config & restart'
            self.setDriver('ST', 2)
            return

        if not self._binding_start():
            LOGGER.error(f'Hub MQTT connection failed!!! exit {self.name}')
            self.Notices['error'] = 'Error hub MQTT connection.  Check config & restart'
            self.setDriver('ST', 2)
            return

        self.Notices.delete('waiting')
        self.ready_event.set()

        # clear inital start-up message
        if self.Notices.get('hello'):
            self.Notices.delete('hello')

        LOGGER.info(f'exit {self.name}')


    def _binding_start(self) -> bool:
        """Create the gateway client and hub connection, wait for the hub, then start the binding."""
        config = self.config
        self.eds_api = EdsAPI(
            config['owserver_address'],
            config['login_name'],
            config['password'],
            discovery_timeout=config['discovery_timeout'],
        )
        self.hub = HubClient(config['client_id'])
        if not self.hub.connect(config['mqtt_server'], config['mqtt_port'],
                                config['mqtt_user'], config['mqtt_password']):
            return False

        while not self.hub.is_connected():
            LOGGER.error("Start: Waiting on hub MQTT connection")
            self.Notices['mqtt'] = 'Waiting on hub MQTT connection'
            time.sleep(3)
        if self.Notices.get('mqtt'):
            self.Notices.delete('mqtt')

        binding_config = BindingConfig(
            client_id=config['client_id'],
            zone=config['zone'],
            td_interval=config['td_interval'],
            value_interval=config['value_interval'],
            publish_td=config['publish_td'],
            stale_after=config['stale_after'],
        )
        self.binding = OWServerBinding(binding_config, self.eds_api, self.hub)
        self.binding.start()
        return True


    def parameterHandler(self, params):
        """Handle custom parameters from the Polyglot dashboard."""
        LOGGER.info('parmHandler: Loading parameters now')
        self.Parameters.load(params)
        self.params_event.set()
        LOGGER.info('parmHandler Done...')


    def checkParams(self):
        """Load and validate the configuration.

        Values come from the Polyglot parameters, then the 'general' section
        of the YAML file named by the 'configfile' parameter, then the
        defaults.

        Returns:
            bool: True if the configuration is valid, False otherwise.
        """
        self.general = {}
        if self.Parameters.get("configfile"):
            if not self._load_configfile():
                return False
        return self._load_parameters()


    def _load_configfile(self):
        """Load the 'general' section of the YAML configfile.

        The section is a list of single item dictionaries and is flattened
        into one dictionary.

        Returns:
            bool: True if the file loaded successfully, False otherwise.
        """
        configfile_path = self.Parameters["configfile"]
        if not isinstance(configfile_path, str):
            LOGGER.error("Invalid configfile path provided")
            return False

        try:
            with open(configfile_path, 'r', encoding='utf-8') as file:
                config_yaml = yaml.safe_load(file) or {}
        except (OSError, yaml.YAMLError) as ex:
            error_type = "open" if isinstance(ex, OSError) else "parse"
            LOGGER.error(f"Failed to {error_type} {configfile_path}: {ex}")
            return False

        general = config_yaml.get("general") or []
        LOGGER.info(f"general = {general}")
        try:
            self.general = {k: v for d in general for k, v in d.items()}
        except (AttributeError, TypeError) as ex:
            LOGGER.error(f"Invalid general section in {configfile_path}: {ex}")
            return False
        return True


    def _load_parameters(self) -> bool:
        """Resolve each configuration key with the fallback hierarchy.

        Returns:
            bool: True if all values are valid, False otherwise.
        """
        def first(key):
            return (self.Parameters.get(key), self.general.get(key), DEFAULT_CONFIG[key])

        try:
            config = {}
            for key in ('owserver_address', 'login_name', 'password', 'client_id', 'zone',
                        'mqtt_server', 'mqtt_user', 'mqtt_password'):
                config[key] = self._get_str(*first(key))
            for key in ('td_interval', 'value_interval', 'discovery_timeout', 'stale_after', 'mqtt_port'):
                config[key] = self._get_int(*first(key))
            config['publish_td'] = self._get_bool(*first('publish_td'))
        except (ValueError, TypeError) as ex:
            LOGGER.error(f"Failed to parse parameters: {ex}")
            self.Notices['config'] = f'Invalid configuration: {ex}'
            return False

        for key in ('td_interval', 'value_interval', 'discovery_timeout', 'mqtt_port'):
            if config[key] <= 0:
                LOGGER.error(f"Invalid {key}: {config[key]}")
                self.Notices['config'] = f'Invalid configuration: {key} must be positive'
                return False

        self.config = config
        LOGGER.info(f"OWServer address: '{config['owserver_address'] or 'discover'}', "
                    f"hub: {config['mqtt_server']}:{config['mqtt_port']}")
        return True


    @staticmethod
    def _get_str(*args: Optional[Any]) -> Optional[str]:
        """Return the first non-empty string, or the last string when all are empty."""
        result = None
        for val in args:
            if isinstance(val, str):
                if val:
                    return val
                result = val
        return result


    @staticmethod
    def _get_int(*args: Optional[Any]) -> Optional[int]:
        """Return the first integer, converting digit strings.

        Raises:
            ValueError: A non-empty string is not a number.
        """
        for val in args:
            if isinstance(val, bool):
                continue
            if isinstance(val, int):
                return val
            if isinstance(val, str) and val.strip():
                if not val.strip().isdigit():
                    raise ValueError(f"'{val}' is not a number")
                return int(val)
        return None


    @staticmethod
    def _get_bool(*args: Optional[Any]) -> Optional[bool]:
        """Return the first boolean, converting true/false strings.

        Raises:
            ValueError: A non-empty string is not a boolean.
        """
        for val in args:
            if isinstance(val, bool):
                return val
            if isinstance(val, str) and val.strip():
                if val.strip().lower() in TRUE_VALUES:
                    return True
                if val.strip().lower() in FALSE_VALUES:
                    return False
                raise ValueError(f"'{val}' is not true or false")
        return None


    def handleLevelChange(self, level):
        """Handle log level changes from Polyglot.

        Args:
            level (dict): Dictionary containing the new log level information.
        """
        LOGGER.info(f'enter: level={level}')
        if level['level'] < 10:
            LOGGER.info("Setting basic config to DEBUG...")
            LOG_HANDLER.set_basic_config(True,logging.DEBUG)
        else:
            LOGGER.info("Setting basic config to WARNING...")
            LOG_HANDLER.set_basic_config(True,logging.WARNING)
        LOGGER.info(f'exit: level={level}')


    def poll(self, flag):
        """Send the heartbeat on long poll, report the device count on short poll."""
        # no updates until node is through start-up
        if not self.ready_event.is_set():
            LOGGER.error(f"Node not ready yet, exiting")
            return

        if 'longPoll' in flag:
            LOGGER.debug('longPoll (controller)')
            self.heartbeat()
        else:
            LOGGER.debug('shortPoll (controller)')
            self.setDriver('GV0', len(self.binding.registry))


    def query(self, command=None):
        """Report the driver values of all nodes to the ISY."""
        LOGGER.info(f"Enter {command}")
        nodes = self.poly.getNodes()
        for node in nodes:
            nodes[node].reportDrivers()
        LOGGER.debug(f"Exit")


    def discover_cmd(self, command=None):
        """Poll the gateway now, refreshing all things and values.

        Args:
            command (str, optional): Command string for logging purposes.

        Returns:
            bool: True if the poll completed successfully, False otherwise.
        """
        LOGGER.info(command)
        if self.binding is None:
            LOGGER.error("Discover: binding not started")
            return False
        if self.discovery_in:
            LOGGER.info('Discover already running.')
            return False

        self.discovery_in = True
        success = False
        try:
            self.binding.poll()
            success = True
            self.Notices.delete('discover')
            LOGGER.info("Discovery Success")
        except OWServerError as ex:
            LOGGER.error(f"Discovery Failure: {ex}")
            self.Notices['discover'] = f'Gateway poll failed: {ex}'
        finally:
            self.discovery_in = False
        self.setDriver('GV0', len(self.binding.registry))
        return success


    def stop(self, command=None):
        """Stop the binding and close the hub connection."""
        LOGGER.info(command)
        self.setDriver('ST', 0, report = True, force = True)
        self.Notices.clear()
        self.ready_event.clear()
        if self.binding:
            self.binding.stop()
        elif self.hub:
            self.hub.close()
        LOGGER.info('NodeServer stopped.')


    def heartbeat(self):
        """Alternate DON and DOF to the ISY so programs can monitor the NodeServer."""
        LOGGER.debug(f'heartbeat: hb={self.hb}')
        command = "DOF" if self.hb else "DON"
        self.reportCmd(command, 2)
        self.hb = not self.hb
        LOGGER.debug("Exit")


    # Status that this node has. Should match the 'sts' section
    # of the nodedef file.
    drivers = [
        {'driver': 'ST', 'value': 1, 'uom': 25, 'name': "Controller Status"},
        {'driver': 'GV0', 'value': 0, 'uom': 107, 'name': "NumberOfDevices"},
    ]

    # Commands that this node can handle.  Should match the
    # 'accepts' section of the nodedef file.
    commands = {
        'DISCOVER': discover_cmd,
        'QUERY': query,
    }
