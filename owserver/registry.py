"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Registry of the devices seen on the gateway.

One entry per node id holds the last parsed node, its thing id, the published
Thing Description and the last published property values. The scheduler
thread and the write handlers both go through this type, so every change is
made under its lock.
"""

# std libraries
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

# external libraries
from udi_interface import LOGGER

# personal libraries
from owserver.parser import OneWireNode


@dataclass
class RegistryEntry:
    node: OneWireNode
    thing_id: str
    td: dict = field(default_factory=dict)
    values: Dict[str, str] = field(default_factory=dict)
    missed: int = 0  # consecutive metadata polls without this device


class DeviceRegistry:
    """Devices keyed by node id."""

    def __init__(self):
        self._entries: Dict[str, RegistryEntry] = {}
        self._lock = threading.RLock()


    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


    def __contains__(self, node_id) -> bool:
        with self._lock:
            return node_id in self._entries


    def get(self, node_id: str) -> Optional[RegistryEntry]:
        with self._lock:
            return self._entries.get(node_id)


    def ids(self) -> List[str]:
        with self._lock:
            return list(self._entries)


    def find_by_thing_id(self, thing_id: str) -> Optional[RegistryEntry]:
        with self._lock:
            for entry in self._entries.values():
                if entry.thing_id == thing_id:
                    return entry
        return None


    def upsert(self, node: OneWireNode, thing_id: str, td: dict) -> Tuple[RegistryEntry, bool]:
        """Create or refresh the entry of a node.

        Returns:
            The entry and True when the device is new or its description changed.
        """
        with self._lock:
            entry = self._entries.get(node.node_id)
            if entry is None:
                entry = RegistryEntry(node=node, thing_id=thing_id, td=td)
                self._entries[node.node_id] = entry
                LOGGER.info(f"New device {node.node_id} as {thing_id}")
                return entry, True

            changed = entry.td != td or entry.thing_id != thing_id
            entry.node = node
            entry.thing_id = thing_id
            entry.td = td
            entry.missed = 0
            return entry, changed


    def diff(self, node_id: str, values: Dict[str, str]) -> Dict[str, str]:
        """Return the values that differ from the last recorded values."""
        with self._lock:
            entry = self._entries.get(node_id)
            if entry is None:
                return dict(values)
            return {name: value for name, value in values.items()
                    if entry.values.get(name) != value}


    def record(self, node_id: str, values: Dict[str, str]) -> None:
        """Remember published values. Unknown devices are ignored."""
        with self._lock:
            entry = self._entries.get(node_id)
            if entry is not None:
                entry.values.update(values)


    def mark_missing(self, seen_ids: Iterable[str], stale_after: int) -> List[str]:
        """Count a metadata poll against the devices that were not seen.

        Stale devices stay registered until the caller removes them, so their
        thing can still be cleared from the hub.

        Args:
            seen_ids: Node ids present in the latest poll.
            stale_after: Number of consecutive misses before a device is
                stale, 0 keeps devices forever.

        Returns:
            The node ids that are stale.
        """
        seen = set(seen_ids)
        stale = []
        with self._lock:
            for node_id, entry in self._entries.items():
                if node_id in seen:
                    entry.missed = 0
                    continue
                entry.missed += 1
                if stale_after > 0 and entry.missed >= stale_after:
                    stale.append(node_id)
        for node_id in stale:
            LOGGER.warning(f"Device {node_id} missing for {stale_after} polls")
        return stale


    def remove(self, node_id: str) -> Optional[RegistryEntry]:
        with self._lock:
            return self._entries.pop(node_id, None)
