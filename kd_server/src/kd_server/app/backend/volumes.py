from __future__ import annotations

"""
Volume lifecycle: entity store bookkeeping plus claim side effects.

- create() is idempotent by name and race-free: creators of one name are
  serialized, while listings and other names proceed during the claim call.
- Distinct volume names can map to one claim name (case folding, truncation).
  The claim is shared then, and is only deleted with the last volume using it.
- remove() and prune() treat claim cleanup as best-effort so the engine view
  stays consistent even when the cluster lags behind.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

from kd_server.app.backend.claims import VolumeClaims, volume_claim_name
from kd_server.app.entities import Event, Volume, gen_id, short_id
from kd_server.app.errors import ClaimError, KubedockError
from kd_server.app.events import EventBus
from kd_server.app.filters import Filter
from kd_server.app.store import EntityStore

_LOGGER = logging.getLogger("kd_server.volumes")

T = TypeVar("T")


@dataclass
class PruneReport(Generic[T]):
    """
    Outcome of a best-effort sweep: removed items and (name, reason) failures.
    Nothing is ever metered, space_reclaimed stays 0.
    """

    removed: List[T] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    space_reclaimed: int = 0


class VolumeService:
    def __init__(self, store: EntityStore, claims: VolumeClaims, events: EventBus) -> None:
        self.store = store
        self.claims = claims
        self.events = events

    def create(
        self,
        name: Optional[str],
        driver: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> Tuple[Volume, bool]:
        """
        Return (volume, created). An existing volume with the same name is
        returned untouched. Claim failures propagate as ClaimError.
        """
        # Anonymous volumes get a generated name, like the engine does
        name = name or gen_id()

        def _build() -> Volume:
            vol = Volume(name=name, driver=driver or "local", labels=dict(labels or {}), id=gen_id())
            vol.short_id = short_id(vol.id)
            for other in self._claim_sharers(vol):
                _LOGGER.warning(
                    "volume %s maps to PVC %s already used by volume %s; the claim will be shared",
                    vol.name, volume_claim_name(vol), other.name,
                )
            self.claims.create_volume(vol)
            return vol

        vol, created = self.store.volumes.create_if_absent(name, _build)
        if created:
            self.events.publish(Event.now("volume", "create", vol.name))
        else:
            _LOGGER.debug("volume %s already exists, returning existing", name)
        return vol, created

    def get(self, ref: str) -> Volume:
        return self.store.volumes.get_by_name_or_id(ref)

    def list(self, filtr: Optional[Filter] = None) -> List[Volume]:
        filtr = filtr or Filter.empty()
        return [vol for vol in self.store.volumes.list() if filtr.match(vol)]

    def remove(self, ref: str) -> Volume:
        """
        Delete a volume by name or ID. NotFoundError when it does not exist;
        claim failures are logged only.
        """
        vol = self.store.volumes.get_by_name_or_id(ref)
        self._delete_claim(vol)
        self.store.volumes.delete(vol)
        self.events.publish(Event.now("volume", "destroy", vol.name))
        return vol

    def prune(self, filtr: Optional[Filter] = None) -> PruneReport[Volume]:
        report: PruneReport[Volume] = PruneReport()
        for vol in self.list(filtr):
            self._delete_claim(vol)
            try:
                self.store.volumes.delete(vol)
            except KubedockError as exc:
                _LOGGER.warning("error deleting volume %s from store: %s", vol.name, exc)
                report.failed.append((vol.name, str(exc)))
                continue
            self.events.publish(Event.now("volume", "destroy", vol.name))
            report.removed.append(vol)
        return report

    def _claim_sharers(self, vol: Volume) -> List[Volume]:
        claim_name = volume_claim_name(vol)
        return [
            other for other in self.store.volumes.list()
            if other.id != vol.id and volume_claim_name(other) == claim_name
        ]

    def _delete_claim(self, vol: Volume) -> None:
        sharers = self._claim_sharers(vol)
        if sharers:
            _LOGGER.info(
                "keeping PVC %s for volume %s, still used by %s",
                volume_claim_name(vol), vol.name, ", ".join(other.name for other in sharers),
            )
            return
        try:
            self.claims.delete_volume(vol)
        except ClaimError as exc:
            _LOGGER.warning("error deleting k8s PVC for volume %s: %s", vol.name, exc)


__all__ = ["PruneReport", "VolumeService"]
