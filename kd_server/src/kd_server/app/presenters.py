"""
Entity -> engine JSON shapes for both API dialects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from kd_server.app.config import ServerConfig
from kd_server.app.entities import Container, Network, Volume

_LIBPOD_SUBNET = {"subnet": "10.88.0.0/16", "gateway": "10.88.0.1"}


def _rfc3339(ts: Optional[datetime]) -> str:
    if ts is None:
        return ""
    return ts.replace(microsecond=0).isoformat().replace("+00:00", "Z")


# --------------------------
# Volumes
# --------------------------

def volume_to_libpod(vol: Volume, settings: ServerConfig) -> Dict[str, Any]:
    return {
        "Name": vol.name,
        "Driver": vol.driver or "local",
        "Mountpoint": vol.mountpoint or settings.mountpoint_for(vol.name),
        "Labels": dict(vol.labels or {}),
        "Scope": "local",
        "CreatedAt": _rfc3339(vol.created),
        "Options": {},
    }


def volume_to_docker(vol: Volume, settings: ServerConfig) -> Dict[str, Any]:
    res = volume_to_libpod(vol, settings)
    res["UsageData"] = None
    return res


# --------------------------
# Networks
# --------------------------

def _network_containers(containers: List[Container]) -> Dict[str, Dict[str, Any]]:
    return {
        tainr.id: {"Name": tainr.name, "Aliases": list(tainr.network_aliases)}
        for tainr in containers
    }


def network_to_docker(netw: Network, containers: List[Container]) -> Dict[str, Any]:
    return {
        "Name": netw.name,
        "Id": netw.id,
        "Created": _rfc3339(netw.created),
        "Scope": "local",
        "Driver": netw.driver,
        "EnableIPv6": False,
        "IPAM": {"Driver": "default", "Options": {}, "Config": []},
        "Internal": False,
        "Attachable": False,
        "Ingress": False,
        "Containers": _network_containers(containers),
        "Options": {},
        "Labels": dict(netw.labels or {}),
    }


def network_to_libpod(netw: Network) -> Dict[str, Any]:
    return {
        "name": netw.name,
        "id": netw.id,
        "driver": netw.driver,
        "network_interface": "kubedock0",
        "created": _rfc3339(netw.created),
        "subnets": [dict(_LIBPOD_SUBNET)],
        "ipv6_enabled": False,
        "internal": False,
        "dns_enabled": True,
        "labels": dict(netw.labels or {}),
    }


__all__ = [
    "volume_to_docker",
    "volume_to_libpod",
    "network_to_docker",
    "network_to_libpod",
]
