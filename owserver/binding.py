"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Protocol binding between the OWServer gateway and the IoT hub.

A heartbeat thread polls the gateway once a second with two countdowns. When
the metadata countdown expires the Thing Descriptions are refreshed and all
property values are published. In between, the value countdown publishes the
values that changed since they were last published.
"""

# std libraries
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

# external libraries
from udi_interface import LOGGER

# personal libraries
from owserver import vocab
from owserver.edsapi import EdsAPI
from owserver.errors import NotInitialized, PublishFailure, WriteFailure
from owserver.hubclient import HubClient
from owserver.parser import OneWireNode
from owserver.registry import DeviceRegistry, RegistryEntry
from owserver.things import create_service_td, create_td_from_node
from owserver.verify import VerificationSchedule

HEARTBEAT_INTERVAL = 1.0

# delays between a write and the verification polls, the gateway is slow
ACTION_VERIFY_DELAYS = (1.0, 4.0)
CONFIG_VERIFY_DELAYS = (1.0, 2.0)


@dataclass
class BindingConfig:
    """Settings of the binding.

    Attributes:
        client_id: Publisher id of the things, also the service device id.
        zone: Zone of the thing ids.
        td_interval: Seconds between Thing Description refreshes.
        value_interval: Seconds between publications of changed values.
        publish_td: Publish the description and properties of the service.
        stale_after: Metadata polls a device can be missing before it is
            removed, 0 keeps devices forever.
        stop_grace: Seconds stop() waits for the heartbeat to finish.
    """
    client_id: str = 'owserver'
    zone: str = 'local'
    td_interval: int = 3600
    value_interval: int = 60
    publish_td: bool = False
    stale_after: int = 0
    stop_grace: float = 1.0


class OWServerBinding:
    """Publishes the gateway devices as things and handles their requests."""

    def __init__(self, config: BindingConfig, eds_api: Optional[EdsAPI], hub: HubClient,
                 timer_factory: Callable = None):
        self.config = config
        self.eds_api = eds_api
        self.hub = hub
        self.registry = DeviceRegistry()
        self.verifications = VerificationSchedule(timer_factory)
        self.running = False
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._td_countdown = 0
        self._value_countdown = 0
        self.hub.set_request_handlers(self.handle_action_request, self.handle_config_request)


    def is_running(self) -> bool:
        with self._lock:
            return self.running


    def start(self) -> None:
        """Start the heartbeat. The hub must already be connecting."""
        LOGGER.info(f"Starting OWServer binding {self.config.client_id}. "
                    f"TD interval={self.config.td_interval}s, value interval={self.config.value_interval}s")
        if self.config.publish_td:
            try:
                self.publish_service_td()
            except PublishFailure as ex:
                LOGGER.warning(f"Service TD not published yet: {ex}")

        with self._lock:
            if self.running:
                LOGGER.warning("OWServer binding already running")
                return
            self.running = True
            self._stop_event.clear()
            self._td_countdown = 0
            self._value_countdown = 0
            self._thread = threading.Thread(target=self.heartbeat, name='owserver-heartbeat', daemon=True)
            self._thread.start()


    def stop(self) -> None:
        LOGGER.info("Stopping OWServer binding")
        with self._lock:
            self.running = False
            self._stop_event.set()
            thread = self._thread
            self._thread = None
        self.verifications.cancel_all()
        if thread is not None and thread is not threading.current_thread():
            thread.join(self.config.stop_grace)
        self.hub.close()
        LOGGER.info("OWServer binding stopped")


    def heartbeat(self) -> None:
        LOGGER.info("OWServer heartbeat started")
        while self.is_running():
            self.tick()
            self._stop_event.wait(HEARTBEAT_INTERVAL)
        LOGGER.info("OWServer heartbeat ended")


    def tick(self) -> None:
        """Advance the countdowns by one second and run the poll that expired.

        A failed poll leaves its countdown expired so it runs again on the
        next tick.
        """
        self._td_countdown -= 1
        if self._td_countdown <= 0:
            try:
                self.update_exposed_things()
                self.update_property_values(only_changes=False)
            except Exception as ex:
                LOGGER.error(f"OWServer metadata poll failed: {ex}")
                self._td_countdown = 0
                return
            self._td_countdown = self.config.td_interval
            self._value_countdown = self.config.value_interval
        else:
            self._value_countdown -= 1
            if self._value_countdown <= 0:
                try:
                    self.update_property_values(only_changes=True)
                except Exception as ex:
                    LOGGER.error(f"OWServer value poll failed: {ex}")
                    self._value_countdown = 0
                    return
                self._value_countdown = self.config.value_interval


    def _check_initialized(self) -> None:
        if self.eds_api is None or not self.is_running():
            LOGGER.error("EDS API not initialized")
            raise NotInitialized("EDS API not initialized")


    def _expose(self, node: OneWireNode, td: Dict[str, Any]) -> bool:
        """Register a node and publish its description when new or changed."""
        entry, changed = self.registry.upsert(node, td['id'], td)
        if changed:
            try:
                self.hub.publish_td(entry.thing_id, td)
            except PublishFailure:
                # try again on the next metadata poll
                self.registry.remove(node.node_id)
                raise
        return changed


    def publish_service_td(self) -> None:
        """Publish the description of this service."""
        client_id = self.config.client_id
        td = create_service_td(self.config.zone, client_id)
        node = OneWireNode(device_type=vocab.DEVICE_TYPE_SERVICE, node_id=client_id,
                           name=client_id, description=td['description'])
        if self._expose(node, td):
            LOGGER.info(f"Published service TD {td['id']}")


    def poll_tds(self) -> List[OneWireNode]:
        """Read the gateway and expose each of its nodes.

        Returns:
            The nodes read from the gateway, gateway first.
        """
        self._check_initialized()
        nodes = self.eds_api.poll_nodes()
        for node in nodes:
            td = create_td_from_node(node, self.config.zone, self.config.client_id)
            if self._expose(node, td):
                LOGGER.info(f"Published TD {td['id']}")
        return nodes


    def update_exposed_things(self) -> List[str]:
        """Refresh the things and drop the devices that went missing.

        Returns:
            The node ids of the removed devices.
        """
        self._check_initialized()
        if self.config.publish_td:
            self.publish_service_td()
        nodes = self.poll_tds()
        seen_ids = [node.node_id for node in nodes]
        if self.config.publish_td:
            seen_ids.append(self.config.client_id)

        removed = []
        for node_id in self.registry.mark_missing(seen_ids, self.config.stale_after):
            entry = self.registry.get(node_id)
            if entry is None:
                continue
            try:
                self.hub.remove_td(entry.thing_id)
            except PublishFailure as ex:
                # stays stale, cleared on the next metadata poll
                LOGGER.error(f"Failed to remove TD {entry.thing_id}: {ex}")
                continue
            self.registry.remove(node_id)
            LOGGER.info(f"Removed TD {entry.thing_id}")
            removed.append(node_id)
        return removed


    def poll_values(self) -> Dict[str, Dict[str, str]]:
        """Read the current property values of all nodes.

        Returns:
            Map of node id to a map of property name and value.
        """
        self._check_initialized()
        nodes = self.eds_api.poll_nodes()
        node_values = {node.node_id: node.values() for node in nodes}
        if self.config.publish_td:
            node_values[self.config.client_id] = {
                vocab.PROP_NAME_GATEWAY_ADDRESS: self.eds_api.last_address,
            }
        return node_values


    def publish_values(self, thing_values: Dict[str, Dict[str, str]], only_changes: bool = True) -> None:
        """Publish the property values of each device.

        Args:
            thing_values: Map of node id to property values.
            only_changes: Only publish values that differ from the last publication.
        """
        if thing_values is None:
            LOGGER.error("OWServerBinding.publish_values: thing_values is None")
            raise ValueError("missing values")

        LOGGER.info(f"OWServerBinding.publish_values for {len(thing_values)} things")
        for node_id, prop_values in thing_values.items():
            entry = self.registry.get(node_id)
            if entry is None:
                LOGGER.error(f"publish_values: device with ID {node_id} has no exposed thing")
                continue
            if only_changes:
                prop_values = self.registry.diff(node_id, prop_values)
            if not prop_values:
                continue
            self.hub.publish_properties(entry.thing_id, prop_values)
            self.registry.record(node_id, prop_values)


    def update_property_values(self, only_changes: bool = True) -> None:
        self.publish_values(self.poll_values(), only_changes)


    def poll(self) -> None:
        """Refresh things and push all values now. Errors go to the caller."""
        self.update_exposed_things()
        self.update_property_values(only_changes=False)


    @staticmethod
    def _write_value(name: str, value: Any) -> str:
        """Booleans are written as 1 or 0."""
        if isinstance(value, bool):
            return '1' if value else '0'
        info = vocab.SENSOR_VOCAB.get(vocab.lookup_eds_name(name))
        if info and info.data_type == vocab.DATA_TYPE_BOOL and isinstance(value, str):
            if value.lower() in ('true', 'on'):
                return '1'
            if value.lower() in ('false', 'off'):
                return '0'
        return str(value)


    def _write(self, entry: RegistryEntry, name: str, value: Any, delays) -> None:
        eds_name = vocab.lookup_eds_name(name)
        try:
            self.eds_api.write_data(entry.node.node_id, eds_name, self._write_value(name, value))
        except WriteFailure as ex:
            LOGGER.error(f"Write of {name} to {entry.thing_id} failed: {ex}")
            raise
        self.verifications.schedule(delays, lambda: self.update_property_values(only_changes=True))


    def handle_action_request(self, thing_id: str, action: str, value: Any) -> None:
        """Write an action to the gateway and verify the result.

        Raises:
            KeyError: The thing is unknown.
            ValueError: The thing has no such action.
            WriteFailure: The gateway write failed, nothing is verified.
        """
        LOGGER.info(f"Thing {thing_id}. Action={action} Value={value}")
        entry = self.registry.find_by_thing_id(thing_id)
        if entry is None:
            raise KeyError(f"Unknown thing {thing_id}")
        if action not in entry.td.get('actions', {}):
            raise ValueError(f"Unknown action {action}")
        self._write(entry, action, value, ACTION_VERIFY_DELAYS)


    def handle_config_request(self, thing_id: str, prop: str, value: Any) -> None:
        """Write a configuration value to the gateway and verify the result.

        Raises:
            KeyError: The thing is unknown.
            ValueError: The property is not writable configuration.
            WriteFailure: The gateway write failed, nothing is verified.
        """
        LOGGER.info(f"HandleConfigRequest for Thing {thing_id}. propName={prop}")
        entry = self.registry.find_by_thing_id(thing_id)
        if entry is None:
            raise KeyError(f"Unknown thing {thing_id}")
        prop_td = entry.td.get('properties', {}).get(prop)
        if prop_td is None or prop_td.get('readOnly', True):
            raise ValueError(f"Property {prop} is not configurable")
        self._write(entry, prop, value, CONFIG_VERIFY_DELAYS)
