"""
Test suite for the device registry.
"""

import pytest
from owserver.parser import OneWireAttr, OneWireNode
from owserver.registry import DeviceRegistry


def _node(node_id="A1", temperature="20.0"):
    node = OneWireNode(device_type="thermometer", node_id=node_id, name="owd_DS18B20")
    node.attrs["temperature"] = OneWireAttr("temperature", temperature, "C", False, True)
    return node


class TestDeviceRegistryUpsert:
    """Tests for upsert."""

    @pytest.fixture
    def registry(self):
        return DeviceRegistry()

    def test_new_device(self, registry):
        entry, changed = registry.upsert(_node(), "urn:t:A1", {"id": "urn:t:A1"})

        assert changed is True
        assert entry.thing_id == "urn:t:A1"
        assert "A1" in registry
        assert len(registry) == 1
        assert registry.ids() == ["A1"]

    def test_same_description_not_changed(self, registry):
        registry.upsert(_node(), "urn:t:A1", {"id": "urn:t:A1"})

        entry, changed = registry.upsert(_node(temperature="21.0"), "urn:t:A1", {"id": "urn:t:A1"})

        assert changed is False
        assert entry.node.attrs["temperature"].value == "21.0"
        assert len(registry) == 1

    def test_changed_description(self, registry):
        registry.upsert(_node(), "urn:t:A1", {"id": "urn:t:A1"})

        _, changed = registry.upsert(_node(), "urn:t:A1", {"id": "urn:t:A1", "title": "new"})

        assert changed is True

    def test_upsert_keeps_values(self, registry):
        registry.upsert(_node(), "urn:t:A1", {})
        registry.record("A1", {"temperature": "20.0"})

        entry, _ = registry.upsert(_node(), "urn:t:A1", {})

        assert entry.values == {"temperature": "20.0"}

    def test_find_by_thing_id(self, registry):
        registry.upsert(_node(), "urn:t:A1", {})

        assert registry.find_by_thing_id("urn:t:A1").node.node_id == "A1"
        assert registry.find_by_thing_id("urn:t:B2") is None


class TestDeviceRegistryValues:
    """Tests for diff and record."""

    @pytest.fixture
    def registry(self):
        registry = DeviceRegistry()
        registry.upsert(_node(), "urn:t:A1", {})
        return registry

    def test_diff_before_record_is_everything(self, registry):
        assert registry.diff("A1", {"temperature": "20.0"}) == {"temperature": "20.0"}

    def test_diff_after_record(self, registry):
        registry.record("A1", {"temperature": "20.0", "humidity": "40"})

        changed = registry.diff("A1", {"temperature": "20.0", "humidity": "41"})

        assert changed == {"humidity": "41"}

    def test_diff_unknown_device(self, registry):
        assert registry.diff("B2", {"x": "1"}) == {"x": "1"}

    def test_record_unknown_device_ignored(self, registry):
        registry.record("B2", {"x": "1"})

        assert "B2" not in registry


class TestDeviceRegistryMarkMissing:
    """Tests for mark_missing."""

    @pytest.fixture
    def registry(self):
        registry = DeviceRegistry()
        registry.upsert(_node("A1"), "urn:t:A1", {})
        registry.upsert(_node("B2"), "urn:t:B2", {})
        return registry

    def test_keep_forever(self, registry):
        for _ in range(10):
            assert registry.mark_missing(["A1"], 0) == []

        assert "B2" in registry
        assert registry.get("B2").missed == 10

    def test_stale_after_polls(self, registry):
        assert registry.mark_missing(["A1"], 2) == []
        assert registry.mark_missing(["A1"], 2) == ["B2"]

        # stale devices stay until removed
        assert "B2" in registry
        assert registry.get("B2").missed == 2
        assert registry.mark_missing(["A1"], 2) == ["B2"]

    def test_seen_again_resets(self, registry):
        registry.mark_missing(["A1"], 2)
        registry.mark_missing(["A1", "B2"], 2)

        assert registry.mark_missing(["A1"], 2) == []
        assert registry.get("B2").missed == 1
