from __future__ import annotations

"""
In-process entity store: the authoritative record of containers, networks and
volumes.

Lookup rules:
- get_by_name_or_id() checks exact ID first, then exact name, so a name that
  collides with another entity's ID is never ambiguous.
- Names are unique per collection; save() refuses to let a second entity take
  an existing name.

Locking:
- Each collection guards its maps with a re-entrant lock. Callers that need a
  check-then-act sequence hold `collection.lock` around it.
- create_if_absent() serializes creators of one name on a per-name lock and
  runs the factory outside the collection lock, so a slow side effect (a
  cluster call) never stalls lookups or listings.
"""

import logging
import threading
from typing import Callable, Dict, Generic, Iterable, List, Tuple, TypeVar, Union

from kd_server.app.entities import Container, Network, Volume, gen_id, now_utc, short_id
from kd_server.app.errors import ConflictError, NotFoundError

_LOGGER = logging.getLogger("kd_server.store")

Entity = Union[Container, Network, Volume]
E = TypeVar("E", Container, Network, Volume)


class Collection(Generic[E]):
    """
    A name-unique, ID-keyed set of one kind of entity.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.lock = threading.RLock()
        self._by_id: Dict[str, E] = {}
        self._name_locks: Dict[str, threading.Lock] = {}

    def get_by_id(self, entity_id: str) -> E:
        with self.lock:
            try:
                return self._by_id[entity_id]
            except KeyError:
                raise NotFoundError(f"{self.kind} {entity_id} not found") from None

    def get_by_name(self, name: str) -> E:
        with self.lock:
            for entity in self._by_id.values():
                if entity.name == name:
                    return entity
        raise NotFoundError(f"{self.kind} {name} not found")

    def get_by_name_or_id(self, ref: str) -> E:
        with self.lock:
            entity = self._by_id.get(ref)
            if entity is not None:
                return entity
            return self.get_by_name(ref)

    def exists(self, ref: str) -> bool:
        try:
            self.get_by_name_or_id(ref)
        except NotFoundError:
            return False
        return True

    def save(self, entity: E) -> E:
        """
        Insert or update an entity. Identity and creation time are assigned on
        first save and never changed afterwards.
        """
        with self.lock:
            if not entity.id:
                entity.id = gen_id()
            if not entity.short_id:
                entity.short_id = short_id(entity.id)
            if entity.created is None:
                entity.created = now_utc()
            for other in self._by_id.values():
                if other.name == entity.name and other.id != entity.id:
                    raise ConflictError(f"{self.kind} with name {entity.name} already exists")
            self._by_id[entity.id] = entity
            _LOGGER.debug("saved %s %s (%s)", self.kind, entity.name, entity.short_id)
            return entity

    def delete(self, entity: E) -> None:
        with self.lock:
            if self._by_id.pop(entity.id, None) is None:
                raise NotFoundError(f"{self.kind} {entity.name} not found")
            _LOGGER.debug("deleted %s %s (%s)", self.kind, entity.name, entity.short_id)

    def list(self) -> List[E]:
        with self.lock:
            return list(self._by_id.values())

    def create_if_absent(self, name: str, factory: Callable[[], E]) -> Tuple[E, bool]:
        """
        Return (existing, False) when an entity with this name exists; otherwise
        build one with factory(), save it and return (entity, True).

        Concurrent callers for the same name are serialized on a per-name lock,
        so factory() runs at most once per name. factory() runs outside the
        collection lock: readers and creators of other names are not blocked by
        its side effects.
        """
        with self.lock:
            try:
                return self.get_by_name(name), False
            except NotFoundError:
                pass
            name_lock = self._name_locks.setdefault(name, threading.Lock())
        with name_lock:
            with self.lock:
                try:
                    return self.get_by_name(name), False
                except NotFoundError:
                    pass
            entity = factory()
            with self.lock:
                saved = self.save(entity)
                # Later callers now find the entity before reaching the name lock
                self._name_locks.pop(name, None)
            return saved, True

    def __len__(self) -> int:
        with self.lock:
            return len(self._by_id)


class EntityStore:
    """
    Owns every Container, Network and Volume instance of the server.
    """

    def __init__(self) -> None:
        self.containers: Collection[Container] = Collection("container")
        self.networks: Collection[Network] = Collection("network")
        self.volumes: Collection[Volume] = Collection("volume")

    def seed_networks(self, names: Iterable[str]) -> List[Network]:
        """
        Make sure the predefined networks exist.
        """
        seeded: List[Network] = []
        for name in names:
            netw, created = self.networks.create_if_absent(
                name, lambda n=name: Network(name=n, driver=_predefined_driver(n), predefined=True)
            )
            netw.predefined = True
            if created:
                _LOGGER.info("created predefined network %s (%s)", netw.name, netw.short_id)
            seeded.append(netw)
        return seeded


def _predefined_driver(name: str) -> str:
    return name if name in ("host", "null") else "bridge"


__all__ = ["Collection", "EntityStore", "Entity"]
