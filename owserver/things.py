"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Thing Description documents for the 1-wire nodes and for the service.
"""

# std libraries
from typing import Any, Dict

# personal libraries
from owserver import vocab
from owserver.parser import OneWireNode

PROPERTY_TYPE_OUTPUT = 'output'
PROPERTY_TYPE_ATTR = 'attribute'
PROPERTY_TYPE_CONFIG = 'configuration'

SERVICE_TITLE = 'EDS OWServer binding'


def create_thing_id(zone: str, publisher: str, device_id: str, device_type: str) -> str:
    """Return the thing id 'urn:{zone}:{publisher}:{device_id}:{device_type}'."""
    return f"urn:{zone}:{publisher}:{device_id}:{device_type}"


def _create_td(thing_id: str, title: str, description: str, device_type: str) -> Dict[str, Any]:
    return {
        'id': thing_id,
        'title': title,
        'description': description,
        '@type': device_type,
        'properties': {},
        'events': {},
        'actions': {},
    }


def create_td_from_node(node: OneWireNode, zone: str, publisher: str) -> Dict[str, Any]:
    """Describe a node as a Thing.

    All attributes become string properties. Sensors are output properties
    and emit an event of the same name, writable sensors are actuators and
    also get an action. The other attributes are read-only attributes, or
    configuration when writable.
    """
    thing_id = create_thing_id(zone, publisher, node.node_id, node.device_type)
    tdoc = _create_td(thing_id, node.name, node.description, node.device_type)

    for attr_name, attr in node.attrs.items():
        prop = {
            'title': attr.name,
            'type': vocab.DATA_TYPE_STRING,
            'unit': attr.unit,
        }
        if attr.is_sensor:
            prop['@type'] = PROPERTY_TYPE_OUTPUT
            prop['readOnly'] = True
            tdoc['events'][attr_name] = {
                'title': attr_name,
                'data': {'type': vocab.DATA_TYPE_STRING, 'unit': attr.unit},
            }
            if attr.writable:
                tdoc['actions'][attr_name] = {
                    'title': attr_name,
                    'input': {'type': vocab.DATA_TYPE_STRING, 'unit': attr.unit},
                }
        elif attr.writable:
            prop['@type'] = PROPERTY_TYPE_CONFIG
            prop['readOnly'] = False
        else:
            prop['@type'] = PROPERTY_TYPE_ATTR
            prop['readOnly'] = True
        tdoc['properties'][attr_name] = prop
    return tdoc


def create_service_td(zone: str, client_id: str) -> Dict[str, Any]:
    """Describe the binding service itself."""
    thing_id = create_thing_id(zone, client_id, client_id, vocab.DEVICE_TYPE_SERVICE)
    tdoc = _create_td(thing_id, client_id, SERVICE_TITLE, vocab.DEVICE_TYPE_SERVICE)
    tdoc['properties'][vocab.PROP_NAME_GATEWAY_ADDRESS] = {
        'title': 'OWServer gateway address',
        'type': vocab.DATA_TYPE_STRING,
        '@type': PROPERTY_TYPE_ATTR,
        'readOnly': True,
    }
    return tdoc
