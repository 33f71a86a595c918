from __future__ import annotations

"""
Entity model for kd_server: containers, networks, volumes and events.

Every entity implements the Matchable capability used by the filter engine:

    match(filter_type, key, value) -> bool

Entities only answer for the filter types meaningful to them; any other type
is an automatic match. A malformed name pattern raises FilterError, which the
filter engine logs and treats permissively.

Contents:
- Time and identity helpers
- Matchable protocol and shared matchers
- Volume, Network, Container, Event
"""

import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Set, runtime_checkable

from kd_server.app.errors import FilterError, NotFoundError

# --------------------------
# Time and identity helpers
# --------------------------

SHORT_ID_LENGTH = 12


def now_utc() -> datetime:
    """
    Current UTC time with timezone info.
    """
    return datetime.now(timezone.utc)


def gen_id() -> str:
    """
    Generate a 64 hex character identifier, the format engine clients expect.
    """
    return uuid.uuid4().hex + uuid.uuid4().hex


def short_id(entity_id: str) -> str:
    return entity_id[:SHORT_ID_LENGTH]


# --------------------------
# Matchable capability
# --------------------------

@runtime_checkable
class Matchable(Protocol):
    def match(self, filter_type: str, key: str, value: str) -> bool:
        ...


def match_name(name: str, pattern: str) -> bool:
    """
    Exact equality first; otherwise treat pattern as a regular expression
    searched in name.
    """
    if name == pattern:
        return True
    try:
        return re.search(pattern, name) is not None
    except re.error as exc:
        raise FilterError(f"invalid name filter {pattern!r}: {exc}") from exc


def match_label(labels: Optional[Dict[str, str]], key: str, value: str) -> bool:
    labels = labels or {}
    if key not in labels:
        return False
    return labels[key] == value


# --------------------------
# Volume
# --------------------------

@dataclass
class Volume:
    """
    A named volume. Backed by a persistent volume claim whose name is derived
    from the volume name on every operation.
    """

    name: str
    driver: str = "local"
    labels: Dict[str, str] = field(default_factory=dict)
    mountpoint: str = ""
    id: str = ""
    short_id: str = ""
    created: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.driver:
            self.driver = "local"
        if self.labels is None:
            self.labels = {}

    def match(self, filter_type: str, key: str, value: str) -> bool:
        if filter_type == "name":
            return match_name(self.name, key)
        if filter_type == "driver":
            return self.driver == key
        if filter_type == "label":
            return match_label(self.labels, key, value)
        return True


# --------------------------
# Network
# --------------------------

@dataclass
class Network:
    """
    An engine network. Not materialized on the cluster; membership lives on
    containers.
    """

    name: str
    driver: str = "bridge"
    labels: Dict[str, str] = field(default_factory=dict)
    predefined: bool = False
    id: str = ""
    short_id: str = ""
    created: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.labels is None:
            self.labels = {}

    def is_predefined(self) -> bool:
        return self.predefined

    def match(self, filter_type: str, key: str, value: str) -> bool:
        if filter_type == "name":
            return match_name(self.name, key)
        if filter_type == "id":
            return bool(key) and self.id.startswith(key)
        if filter_type == "driver":
            return self.driver == key
        if filter_type == "label":
            return match_label(self.labels, key, value)
        if filter_type == "type":
            if key == "builtin":
                return self.predefined
            if key == "custom":
                return not self.predefined
        return True


# --------------------------
# Container
# --------------------------

@dataclass
class Container:
    """
    The slice of a container this layer needs: identity, network membership,
    DNS aliases and named volume mounts (mount path -> volume name).
    """

    name: str
    image: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    networks: Set[str] = field(default_factory=set)
    network_aliases: List[str] = field(default_factory=list)
    mounts: Dict[str, str] = field(default_factory=dict)
    id: str = ""
    short_id: str = ""
    created: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.labels is None:
            self.labels = {}

    def connect_network(self, network_id: str) -> None:
        self.networks.add(network_id)

    def disconnect_network(self, network_id: str) -> None:
        if network_id not in self.networks:
            raise NotFoundError(f"container {self.name} is not connected to network {network_id}")
        self.networks.discard(network_id)

    def add_network_aliases(self, aliases: Iterable[str]) -> List[str]:
        """
        Append lower-cased aliases not yet present. Returns the aliases added.
        """
        seen = {a.lower() for a in self.network_aliases}
        added: List[str] = []
        for alias in aliases or []:
            alias = alias.lower()
            if alias and alias not in seen:
                self.network_aliases.append(alias)
                seen.add(alias)
                added.append(alias)
        return added

    def match(self, filter_type: str, key: str, value: str) -> bool:
        if filter_type == "name":
            return match_name(self.name, key.lstrip("/"))
        if filter_type == "id":
            return bool(key) and self.id.startswith(key)
        if filter_type == "label":
            return match_label(self.labels, key, value)
        if filter_type == "network":
            return key in self.networks
        return True


# --------------------------
# Event
# --------------------------

EVENT_SUBJECT_TYPES = ("container", "image", "network", "volume")


@dataclass(frozen=True)
class Event:
    type: str
    action: str
    id: str
    time: int
    time_nano: int

    @classmethod
    def now(cls, type: str, action: str, id: str) -> "Event":
        nanos = time.time_ns()
        return cls(type=type, action=action, id=id, time=nanos // 1_000_000_000, time_nano=nanos)

    def match(self, filter_type: str, key: str, value: str) -> bool:
        if filter_type == "type":
            return self.type == key
        if filter_type == "event":
            return self.action == key
        if filter_type in EVENT_SUBJECT_TYPES:
            # Subject filters only constrain events about that kind of object
            return self.type != filter_type or self.id == key
        return True


__all__ = [
    "SHORT_ID_LENGTH",
    "now_utc",
    "gen_id",
    "short_id",
    "Matchable",
    "match_name",
    "match_label",
    "Volume",
    "Network",
    "Container",
    "Event",
]
