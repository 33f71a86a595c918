from __future__ import annotations

"""
Network lifecycle and container membership.

Networks are not materialized on the cluster. They exist for engine
compatibility: membership sets on containers and the DNS aliases containers
carry on their networks.

Rules:
- Predefined networks cannot be removed or disconnected from
  (PredefinedNetworkError).
- A network with attached containers cannot be removed (ConflictError);
  membership is computed by scanning every container.
- Prune skips both cases silently.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from kd_server.app.backend.volumes import PruneReport
from kd_server.app.entities import Container, Event, Network
from kd_server.app.errors import ConflictError, KubedockError, PredefinedNetworkError
from kd_server.app.events import EventBus
from kd_server.app.filters import Filter
from kd_server.app.store import EntityStore

_LOGGER = logging.getLogger("kd_server.networks")


class NetworkService:
    def __init__(self, store: EntityStore, events: EventBus) -> None:
        self.store = store
        self.events = events

    def create(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None,
        driver: Optional[str] = None,
    ) -> Tuple[Network, bool]:
        netw, created = self.store.networks.create_if_absent(
            name, lambda: Network(name=name, driver=driver or "bridge", labels=dict(labels or {}))
        )
        if created:
            self.events.publish(Event.now("network", "create", netw.id))
        return netw, created

    def get(self, ref: str) -> Network:
        return self.store.networks.get_by_name_or_id(ref)

    def list(self, filtr: Optional[Filter] = None) -> List[Network]:
        filtr = filtr or Filter.empty()
        return [netw for netw in self.store.networks.list() if filtr.match(netw)]

    def containers_in(self, netw: Network) -> List[Container]:
        return [tainr for tainr in self.store.containers.list() if netw.id in tainr.networks]

    def connect(self, network_ref: str, container_ref: str, aliases: Iterable[str] = ()) -> Container:
        netw = self.store.networks.get_by_name_or_id(network_ref)
        with self.store.containers.lock:
            tainr = self.store.containers.get_by_name_or_id(container_ref)
            tainr.connect_network(netw.id)
            tainr.add_network_aliases(aliases)
            self.store.containers.save(tainr)
        self.events.publish(Event.now("network", "connect", netw.id))
        return tainr

    def disconnect(self, network_ref: str, container_ref: str) -> Container:
        netw = self.store.networks.get_by_name_or_id(network_ref)
        with self.store.containers.lock:
            tainr = self.store.containers.get_by_name_or_id(container_ref)
            if netw.is_predefined():
                raise PredefinedNetworkError(f"cannot disconnect from predefined network {netw.name}")
            tainr.disconnect_network(netw.id)
            self.store.containers.save(tainr)
        self.events.publish(Event.now("network", "disconnect", netw.id))
        return tainr

    def remove(self, ref: str) -> Network:
        with self.store.networks.lock:
            netw = self.store.networks.get_by_name_or_id(ref)
            if netw.is_predefined():
                raise PredefinedNetworkError(f"{netw.name} is a pre-defined network and cannot be removed")
            if self.containers_in(netw):
                raise ConflictError(f"cannot delete network {netw.name}, containers attached")
            self.store.networks.delete(netw)
        self.events.publish(Event.now("network", "destroy", netw.id))
        return netw

    def prune(self, filtr: Optional[Filter] = None) -> PruneReport[Network]:
        report: PruneReport[Network] = PruneReport()
        for netw in self.list(filtr):
            if netw.is_predefined() or self.containers_in(netw):
                continue
            try:
                self.store.networks.delete(netw)
            except KubedockError as exc:
                _LOGGER.warning("error deleting network %s from store: %s", netw.name, exc)
                report.failed.append((netw.name, str(exc)))
                continue
            self.events.publish(Event.now("network", "destroy", netw.id))
            report.removed.append(netw)
        return report


__all__ = ["NetworkService"]
