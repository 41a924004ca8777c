"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

MQTT transport to the IoT hub.

Thing Descriptions are published retained on things/{thing_id}/td and property
values on things/{thing_id}/properties. Requests from consumers arrive on
things/{thing_id}/action/{name} and things/{thing_id}/config/{name}.
"""

# std libraries
import json
from typing import Any, Callable, Dict, Optional

# external libraries
from udi_interface import LOGGER
from paho.mqtt.client import Client, MQTT_ERR_SUCCESS
from paho.mqtt.enums import CallbackAPIVersion

# personal libraries
from owserver.errors import PublishFailure

TOPIC_ROOT = 'things'
TOPIC_TD = 'td'
TOPIC_PROPERTIES = 'properties'
TOPIC_ACTION = 'action'
TOPIC_CONFIG = 'config'

RequestHandler = Callable[[str, str, Any], None]


class HubClient:
    """Publishes things to the hub and routes requests back to the binding.

    Attributes:
        client_id (str): MQTT client id.
        mqttc (Client): paho MQTT client, created on connect.
    """

    def __init__(self, client_id: str = 'owserver'):
        self.client_id = client_id
        self.mqttc: Optional[Client] = None
        self._action_handler: Optional[RequestHandler] = None
        self._config_handler: Optional[RequestHandler] = None


    def set_request_handlers(self, action_handler: Optional[RequestHandler],
                             config_handler: Optional[RequestHandler]) -> None:
        """Set the handlers called as handler(thing_id, name, value)."""
        self._action_handler = action_handler
        self._config_handler = config_handler


    def connect(self, host: str, port: int, user: Optional[str] = None,
                password: Optional[str] = None) -> bool:
        """Connect to the MQTT broker and start the network loop.

        Returns:
            bool: True if the connection was started, False otherwise.
        """
        self.mqttc = Client(CallbackAPIVersion.VERSION1, client_id=self.client_id)
        self.mqttc.on_connect = self._on_connect
        self.mqttc.on_disconnect = self._on_disconnect  # type: ignore
        self.mqttc.on_message = self._on_message
        if user:
            self.mqttc.username_pw_set(user, password)

        try:
            self.mqttc.connect(host, port, keepalive=10)
            self.mqttc.loop_start()
        except Exception as ex:
            LOGGER.error(f"Error connecting to hub MQTT broker {host}:{port}: {ex}")
            return False
        LOGGER.info(f"Hub MQTT connecting to {host}:{port}")
        return True


    def is_connected(self) -> bool:
        return self.mqttc is not None and self.mqttc.is_connected()


    def close(self) -> None:
        if self.mqttc:
            self.mqttc.loop_stop()
            self.mqttc.disconnect()
            LOGGER.info("Hub MQTT closed")


    def _on_connect(self, _mqttc, _userdata, _flags, rc):
        if rc == 0:
            LOGGER.info("Hub MQTT connected")
            self.subscribe()
        else:
            LOGGER.error(f"Hub MQTT connect failed with rc:{rc}")


    def _on_disconnect(self, _mqttc, _userdata, rc):
        if rc != 0:
            LOGGER.warning("Hub MQTT disconnected, trying to re-connect")
            try:
                self.mqttc.reconnect()
            except Exception as ex:
                LOGGER.error(f"Error reconnecting to hub MQTT broker {ex}")
        else:
            LOGGER.info("Hub MQTT graceful disconnection")


    def subscribe(self) -> None:
        for topic in (f"{TOPIC_ROOT}/+/{TOPIC_ACTION}/+", f"{TOPIC_ROOT}/+/{TOPIC_CONFIG}/+"):
            result, mid = self.mqttc.subscribe(topic)
            if result == MQTT_ERR_SUCCESS:
                LOGGER.info(f"Subscribed to {topic} MID: {mid}")
            else:
                LOGGER.error(f"Failed to subscribe {topic} MID: {mid}, res: {result}")


    @staticmethod
    def _decode_payload(payload: bytes) -> Any:
        """Decode a JSON payload, raw text is passed as is."""
        text = payload.decode('utf-8')
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text


    def _on_message(self, _mqttc, _userdata, message):
        """Route action and config requests to their handler."""
        topic = message.topic
        parts = topic.split('/')
        if len(parts) != 4 or parts[0] != TOPIC_ROOT:
            LOGGER.warning(f"Ignoring message on {topic}")
            return
        _, thing_id, kind, name = parts
        if kind == TOPIC_ACTION:
            handler = self._action_handler
        elif kind == TOPIC_CONFIG:
            handler = self._config_handler
        else:
            LOGGER.warning(f"Ignoring message on {topic}")
            return
        if handler is None:
            LOGGER.warning(f"No {kind} handler for {topic}")
            return

        try:
            value = self._decode_payload(message.payload)
            LOGGER.info(f"Received {kind} request {thing_id} {name}={value}")
            handler(thing_id, name, value)
        except Exception as ex:
            LOGGER.error(f"Failed to process {kind} request on {topic}: {ex}")


    def _publish(self, topic: str, payload: str, retain: bool = False) -> None:
        if not self.is_connected():
            raise PublishFailure(f"Not connected, unable to publish {topic}")
        LOGGER.debug(f"publish: topic: {topic}, message: {payload}")
        info = self.mqttc.publish(topic, payload, retain=retain)
        if info.rc != MQTT_ERR_SUCCESS:
            raise PublishFailure(f"Publish to {topic} failed with rc:{info.rc}")


    def publish_td(self, thing_id: str, td: Dict[str, Any]) -> None:
        self._publish(f"{TOPIC_ROOT}/{thing_id}/{TOPIC_TD}", json.dumps(td), retain=True)


    def remove_td(self, thing_id: str) -> None:
        """Clear the retained description of a thing."""
        self._publish(f"{TOPIC_ROOT}/{thing_id}/{TOPIC_TD}", '', retain=True)


    def publish_properties(self, thing_id: str, values: Dict[str, Any]) -> None:
        self._publish(f"{TOPIC_ROOT}/{thing_id}/{TOPIC_PROPERTIES}", json.dumps(values))
