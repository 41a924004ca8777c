"""
Test suite for the Thing Description builder.
"""

import os

import pytest
from owserver import vocab
from owserver.parser import parse_nodes
from owserver.things import (
    PROPERTY_TYPE_ATTR,
    PROPERTY_TYPE_CONFIG,
    PROPERTY_TYPE_OUTPUT,
    create_service_td,
    create_td_from_node,
    create_thing_id,
)
from owserver.xmltree import decode

FIXTURE = os.path.join(os.path.dirname(__file__), "owserver-details.xml")


@pytest.fixture
def nodes():
    with open(FIXTURE, "rb") as file:
        return parse_nodes(decode(file.read()))


class TestCreateThingId:
    """Tests for create_thing_id."""

    def test_format(self):
        assert create_thing_id("local", "owserver", "A1", "thermometer") == "urn:local:owserver:A1:thermometer"


class TestCreateTdFromNode:
    """Tests for create_td_from_node."""

    def test_identity(self, nodes):
        td = create_td_from_node(nodes[1], "local", "owserver")

        assert td["id"] == "urn:local:owserver:5F00000B2B2A3428:thermometer"
        assert td["title"] == "owd_DS18B20"
        assert td["description"] == "Programmable resolution thermometer"
        assert td["@type"] == vocab.DEVICE_TYPE_THERMOMETER

    def test_every_attribute_is_a_property(self, nodes):
        td = create_td_from_node(nodes[1], "local", "owserver")

        assert set(td["properties"]) == set(nodes[1].attrs)
        assert all(prop["type"] == vocab.DATA_TYPE_STRING for prop in td["properties"].values())

    def test_sensor_is_output_with_event(self, nodes):
        td = create_td_from_node(nodes[1], "local", "owserver")

        prop = td["properties"]["temperature"]
        assert prop["@type"] == PROPERTY_TYPE_OUTPUT
        assert prop["unit"] == "C"
        assert td["events"]["temperature"]["data"]["unit"] == "C"
        assert "temperature" not in td["actions"]

    def test_writable_sensor_has_action(self, nodes):
        td = create_td_from_node(nodes[3], "local", "owserver")

        assert "relay" in td["actions"]
        assert "relay" in td["events"]

    def test_writable_attribute_is_configuration(self, nodes):
        td = create_td_from_node(nodes[1], "local", "owserver")

        assert td["properties"]["UserByte1"]["@type"] == PROPERTY_TYPE_CONFIG
        assert td["properties"]["UserByte1"]["readOnly"] is False

    def test_attribute_is_read_only(self, nodes):
        td = create_td_from_node(nodes[1], "local", "owserver")

        assert td["properties"]["Health"]["@type"] == PROPERTY_TYPE_ATTR
        assert td["properties"]["Health"]["readOnly"] is True
        assert "Health" not in td["events"]

    def test_description_has_no_values(self, nodes):
        """The same node with new values gives the same description."""
        first = create_td_from_node(nodes[1], "local", "owserver")
        nodes[1].attrs["temperature"].value = "99.9"

        assert create_td_from_node(nodes[1], "local", "owserver") == first


class TestCreateServiceTd:
    """Tests for create_service_td."""

    def test_service(self):
        td = create_service_td("local", "owserver")

        assert td["id"] == "urn:local:owserver:owserver:service"
        assert td["@type"] == vocab.DEVICE_TYPE_SERVICE
        assert vocab.PROP_NAME_GATEWAY_ADDRESS in td["properties"]
