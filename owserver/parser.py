"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Converts the decoded OWServer tree into a flat list of 1-wire nodes.
"""

# std libraries
from dataclasses import dataclass, field
from typing import Dict, List

# personal libraries
from owserver import vocab
from owserver.xmltree import XmlBranch, XmlLeaf, XmlNode


@dataclass
class OneWireAttr:
    """A single node attribute or sensor value."""
    name: str
    value: str = ""
    unit: str = ""
    writable: bool = False
    is_sensor: bool = False  # sensors emit events on change


@dataclass
class OneWireNode:
    """The gateway or one of its connected 1-wire devices."""
    device_type: str = vocab.DEVICE_TYPE_GATEWAY
    node_id: str = ""
    name: str = ""
    description: str = ""
    attrs: Dict[str, OneWireAttr] = field(default_factory=dict)

    def values(self) -> Dict[str, str]:
        return {name: attr.value for name, attr in self.attrs.items()}


def _parse_attr(leaf: XmlLeaf) -> OneWireAttr:
    """Standardize the name, unit and value of a leaf.

    Returns an attribute with an empty name when the leaf must be dropped.
    """
    writable = leaf.attrs.get('Writable', '').lower() == 'true'
    sensor_info = vocab.SENSOR_VOCAB.get(leaf.tag)
    value = leaf.text
    if sensor_info:
        # writable sensors are actuators
        name = sensor_info.name
        value = vocab.round_value(value, sensor_info.decimals)
    else:
        # writable attributes are configuration
        name, _ = vocab.apply_vocabulary(leaf.tag, vocab.ATTR_VOCAB)
    unit, _ = vocab.apply_vocabulary(leaf.attrs.get('Units', ''), vocab.UNIT_VOCAB)
    return OneWireAttr(name=name, value=value, unit=unit,
                       writable=writable, is_sensor=sensor_info is not None)


def parse_nodes(xml_node: XmlNode, latency: float = 0.0, is_root: bool = True) -> List[OneWireNode]:
    """Parse a decoded OWServer document into a list of nodes.

    The first node in the list is the node for ``xml_node`` itself, followed
    by the nested devices in depth-first order. Leaves become attributes of
    their parent, branches become nodes of their own.

    Args:
        xml_node: Decoded element to parse.
        latency: Fetch latency in seconds, added to the root node when not 0.
        is_root: Set for the gateway element at the top of the document.

    Returns:
        List of nodes, gateway first.
    """
    node = OneWireNode(
        name=xml_node.tag,
        description=xml_node.attrs.get('Description', ''),
    )
    node_list = [node]
    if is_root and latency:
        node.attrs[vocab.PROP_NAME_LATENCY] = OneWireAttr(
            name=vocab.PROP_NAME_LATENCY,
            value=f"{latency:.3f}",
            unit='sec',
        )
    if not isinstance(xml_node, XmlBranch):
        return node_list

    named_by_device_name = False
    for child in xml_node.children:
        if isinstance(child, XmlBranch):
            node_list.extend(parse_nodes(child, 0.0, False))
            continue

        attr = _parse_attr(child)
        if not attr.name:
            continue
        node.attrs[attr.name] = attr

        if child.tag == 'Family':
            node.device_type = vocab.device_type_for_family(attr.value)
        elif child.tag == 'ROMId':
            if not named_by_device_name:
                node.node_id = attr.value
        elif is_root and child.tag == 'DeviceName':
            # the gateway is identified by its device name
            named_by_device_name = True
            node.node_id = attr.value
            node.name = attr.value
            node.description = vocab.GATEWAY_DESCRIPTION
    return node_list
