from __future__ import annotations

"""
Volume -> PersistentVolumeClaim translation.

Naming is deterministic and recomputed on every call: a claim is always
"kubedock-vol-<kubernetes-safe volume name>", cut to the 63 character limit of
Kubernetes names. Nothing but the volume's mountpoint is stored as a result of
these operations.

Convergence rules:
- create: an existing claim means an earlier attempt already converged.
- delete: a missing claim is the desired end state.
- bulk delete: per-item failures are logged and reported, never fatal.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from kubernetes import client

from kd_server.app.backend.kube import ClaimClient
from kd_server.app.config import ServerConfig
from kd_server.app.entities import Container, Volume
from kd_server.app.errors import ClaimAlreadyExists, ClaimError, ClaimNotFound, NotFoundError
from kd_server.app.store import EntityStore

_LOGGER = logging.getLogger("kd_server.claims")

LABEL_VOLUME_ID = "kubedock.volumeid"
ANNOTATION_VOLUME_NAME = "kubedock.volumename"

CLAIM_NAME_PREFIX = "kubedock-vol-"
POD_VOLUME_PREFIX = "nv-"
MAX_NAME_LENGTH = 63

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")

_ACCESS_MODES = {
    "readwriteonce": "ReadWriteOnce",
    "rwo": "ReadWriteOnce",
    "readwritemany": "ReadWriteMany",
    "rwx": "ReadWriteMany",
    "readonlymany": "ReadOnlyMany",
    "rox": "ReadOnlyMany",
}


# --------------------------
# Pure naming helpers
# --------------------------

def to_kubernetes_name(name: str) -> str:
    """
    Lower-case name with every run of characters outside [a-z0-9-] replaced by
    '-' and no leading/trailing '-'.
    """
    return _INVALID_NAME_CHARS.sub("-", (name or "").lower()).strip("-")


def _bounded(name: str) -> str:
    return name[:MAX_NAME_LENGTH].rstrip("-")


def volume_claim_name(volume: Volume) -> str:
    return _bounded(CLAIM_NAME_PREFIX + to_kubernetes_name(volume.name))


def pod_volume_name(volume: Volume) -> str:
    return _bounded(POD_VOLUME_PREFIX + to_kubernetes_name(volume.name))


def parse_access_mode(mode: Optional[str]) -> str:
    """
    Map a configured access mode or its alias onto a Kubernetes access mode.
    Unknown values fall back to ReadWriteOnce.
    """
    key = (mode or "").strip().lower()
    if key in _ACCESS_MODES:
        return _ACCESS_MODES[key]
    for alias, resolved in _ACCESS_MODES.items():
        if len(key) >= 3 and alias.startswith(key):
            return resolved
    return "ReadWriteOnce"


# --------------------------
# Translator
# --------------------------

@dataclass(frozen=True)
class ClaimResult:
    name: str
    deleted: bool
    error: Optional[str] = None


class VolumeClaims:
    def __init__(self, claims: ClaimClient, settings: ServerConfig) -> None:
        self.claims = claims
        self.settings = settings

    def build_claim(self, volume: Volume) -> client.V1PersistentVolumeClaim:
        labels: Dict[str, str] = {}
        labels.update(self.settings.system_labels())
        labels.update(self.settings.default_labels)
        labels[LABEL_VOLUME_ID] = volume.short_id

        annotations: Dict[str, str] = dict(self.settings.default_annotations)
        annotations[ANNOTATION_VOLUME_NAME] = volume.name

        spec = client.V1PersistentVolumeClaimSpec(
            access_modes=[parse_access_mode(self.settings.volume_access_mode)],
            resources=client.V1VolumeResourceRequirements(requests={"storage": self.settings.volume_size}),
        )
        if self.settings.volume_storage_class:
            spec.storage_class_name = self.settings.volume_storage_class

        return client.V1PersistentVolumeClaim(
            api_version="v1",
            kind="PersistentVolumeClaim",
            metadata=client.V1ObjectMeta(
                name=volume_claim_name(volume),
                namespace=self.settings.namespace,
                labels=labels,
                annotations=annotations,
            ),
            spec=spec,
        )

    def create_volume(self, volume: Volume) -> None:
        """
        Create the claim backing volume and set its mountpoint.

        Raises ClaimError when the cluster refuses for any reason other than
        the claim already existing.
        """
        claim = self.build_claim(volume)
        try:
            self.claims.create(claim)
            _LOGGER.info(
                "created PVC %s for volume %s in namespace %s (storageClass=%s, size=%s, accessMode=%s)",
                claim.metadata.name,
                volume.name,
                self.settings.namespace,
                self.settings.volume_storage_class or "<default>",
                self.settings.volume_size,
                claim.spec.access_modes[0],
            )
        except ClaimAlreadyExists:
            _LOGGER.info("PVC %s for volume %s already exists", claim.metadata.name, volume.name)
        volume.mountpoint = self.settings.mountpoint_for(volume.name)

    def delete_volume(self, volume: Volume) -> None:
        name = volume_claim_name(volume)
        try:
            self.claims.delete(name)
        except ClaimNotFound:
            _LOGGER.debug("PVC %s for volume %s already gone", name, volume.name)
            return
        _LOGGER.info("deleted PVC %s for volume %s", name, volume.name)

    def delete_volumes(self, selector: str) -> List[ClaimResult]:
        """
        Delete every claim matching selector. A failure to list is raised; a
        failure to delete one claim is logged and recorded in its result.
        """
        results: List[ClaimResult] = []
        for claim in self.claims.list(selector):
            name = claim.metadata.name
            _LOGGER.debug("deleting PVC %s", name)
            try:
                self.claims.delete(name)
            except ClaimNotFound:
                results.append(ClaimResult(name=name, deleted=True))
            except ClaimError as exc:
                _LOGGER.error("error deleting PVC %s: %s", name, exc)
                results.append(ClaimResult(name=name, deleted=False, error=str(exc)))
            else:
                results.append(ClaimResult(name=name, deleted=True))
        return results

    def add_named_volumes(
        self,
        container: Container,
        pod: client.V1Pod,
        named_volumes: Mapping[str, Volume],
    ) -> None:
        """
        Wire claim-backed mounts into pod for every mount path -> volume pair.
        The first container of the pod receives the mounts. Mutates pod in place
        and performs no cluster calls.
        """
        if not pod.spec.containers:
            _LOGGER.warning("pod for container %s has no containers; skipping named volumes", container.name)
            return
        primary = pod.spec.containers[0]
        if pod.spec.volumes is None:
            pod.spec.volumes = []
        if primary.volume_mounts is None:
            primary.volume_mounts = []

        # One pod volume per claim, however many paths mount it
        present = {v.name for v in pod.spec.volumes}
        for mount_path, volume in named_volumes.items():
            vol_name = pod_volume_name(volume)
            if vol_name not in present:
                present.add(vol_name)
                pod.spec.volumes.append(
                    client.V1Volume(
                        name=vol_name,
                        persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                            claim_name=volume_claim_name(volume),
                        ),
                    )
                )
            primary.volume_mounts.append(client.V1VolumeMount(name=vol_name, mount_path=mount_path))


def named_volumes_for(container: Container, store: EntityStore) -> Dict[str, Volume]:
    """
    Resolve container.mounts (mount path -> volume name or ID) against the store.
    """
    resolved: Dict[str, Volume] = {}
    for mount_path, ref in container.mounts.items():
        try:
            resolved[mount_path] = store.volumes.get_by_name_or_id(ref)
        except NotFoundError:
            _LOGGER.warning("container %s mounts unknown volume %s at %s", container.name, ref, mount_path)
    return resolved


__all__ = [
    "LABEL_VOLUME_ID",
    "ANNOTATION_VOLUME_NAME",
    "ClaimResult",
    "VolumeClaims",
    "to_kubernetes_name",
    "volume_claim_name",
    "pod_volume_name",
    "parse_access_mode",
    "named_volumes_for",
]
