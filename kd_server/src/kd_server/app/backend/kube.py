from __future__ import annotations

"""
Kubernetes adapter for persistent volume claims.

KubernetesClaimClient is the only place that talks to the cluster. It reduces
the CoreV1 API to the three calls the volume translator needs and turns
ApiException into the distinguishable ClaimAlreadyExists / ClaimNotFound
conditions (anything else becomes ClaimError).
"""

import logging
from typing import List, Protocol

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from kd_server.app.config import ServerConfig
from kd_server.app.errors import ClaimAlreadyExists, ClaimError, ClaimNotFound

_LOGGER = logging.getLogger("kd_server.kube")


class ClaimClient(Protocol):
    """
    What the volume translator consumes from the orchestration platform.
    """

    def create(self, claim: client.V1PersistentVolumeClaim) -> client.V1PersistentVolumeClaim:
        ...

    def delete(self, name: str) -> None:
        ...

    def list(self, selector: str) -> List[client.V1PersistentVolumeClaim]:
        ...


def load_kube_config(settings: ServerConfig) -> None:
    """
    Explicit kubeconfig when configured; otherwise in-cluster service account,
    falling back to the default kubeconfig for local runs.
    """
    if settings.kubeconfig:
        config.load_kube_config(config_file=settings.kubeconfig)
        return
    try:
        config.load_incluster_config()
    except ConfigException:
        config.load_kube_config()


def _as_claim_error(exc: client.ApiException, what: str) -> ClaimError:
    if exc.status == 409:
        return ClaimAlreadyExists(f"{what}: already exists")
    if exc.status == 404:
        return ClaimNotFound(f"{what}: not found")
    return ClaimError(f"{what}: {exc.status} {exc.reason}")


class KubernetesClaimClient:
    def __init__(self, namespace: str, api: client.CoreV1Api | None = None) -> None:
        self.namespace = namespace
        self.core_v1 = api or client.CoreV1Api()

    @classmethod
    def from_settings(cls, settings: ServerConfig) -> "KubernetesClaimClient":
        load_kube_config(settings)
        return cls(settings.namespace)

    def ping(self) -> None:
        """
        Verify the namespace is reachable with the configured credentials.
        """
        try:
            self.core_v1.list_namespaced_persistent_volume_claim(self.namespace, limit=1)
        except client.ApiException as exc:
            raise _as_claim_error(exc, f"namespace {self.namespace}") from exc

    def create(self, claim: client.V1PersistentVolumeClaim) -> client.V1PersistentVolumeClaim:
        try:
            return self.core_v1.create_namespaced_persistent_volume_claim(self.namespace, claim)
        except client.ApiException as exc:
            raise _as_claim_error(exc, f"create pvc {claim.metadata.name}") from exc

    def delete(self, name: str) -> None:
        try:
            self.core_v1.delete_namespaced_persistent_volume_claim(name, self.namespace)
        except client.ApiException as exc:
            raise _as_claim_error(exc, f"delete pvc {name}") from exc

    def list(self, selector: str) -> List[client.V1PersistentVolumeClaim]:
        try:
            res = self.core_v1.list_namespaced_persistent_volume_claim(self.namespace, label_selector=selector)
        except client.ApiException as exc:
            raise _as_claim_error(exc, f"list pvc {selector}") from exc
        return list(res.items or [])


__all__ = ["ClaimClient", "KubernetesClaimClient", "load_kube_config"]
