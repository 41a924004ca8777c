"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Schema agnostic decoder for the OWServer details document.

The gateway publishes its tree as nested elements without a schema. An
element without child elements is a leaf carrying a value as text, an element
with child elements is a branch. The decision is made once here so the node
parser never has to look at raw elements again.
"""

# std libraries
from dataclasses import dataclass, field
from typing import Dict, Iterator, Tuple, Union
from xml.etree import ElementTree as ET

# personal libraries
from owserver.errors import DecodeError


@dataclass(frozen=True)
class XmlLeaf:
    """Element without child elements."""
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    text: str = ""


@dataclass(frozen=True)
class XmlBranch:
    """Element with one or more child elements."""
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    children: Tuple["XmlNode", ...] = ()

    def leaves(self) -> Iterator[XmlLeaf]:
        return (child for child in self.children if isinstance(child, XmlLeaf))

    def branches(self) -> Iterator["XmlBranch"]:
        return (child for child in self.children if isinstance(child, XmlBranch))


XmlNode = Union[XmlLeaf, XmlBranch]


def local_name(name: str) -> str:
    """Strip the '{namespace}' prefix ElementTree puts on tags and attributes."""
    if name.startswith("{"):
        return name.split("}", 1)[1]
    return name


def _convert(elem: ET.Element) -> XmlNode:
    tag = local_name(elem.tag)
    attrs = {local_name(k): v for k, v in elem.attrib.items()}
    if len(elem) == 0:
        return XmlLeaf(tag, attrs, elem.text or "")
    return XmlBranch(tag, attrs, tuple(_convert(child) for child in elem))


def decode(data: Union[bytes, str]) -> XmlNode:
    """Decode a details document into a tree of leaves and branches.

    Args:
        data: Raw document as received from the gateway or read from file.

    Returns:
        The root of the decoded tree.

    Raises:
        DecodeError: The document is not well-formed.
    """
    try:
        root = ET.fromstring(data)
    except (ET.ParseError, ValueError) as ex:
        raise DecodeError(f"Invalid OWServer XML: {ex}") from ex
    return _convert(root)
