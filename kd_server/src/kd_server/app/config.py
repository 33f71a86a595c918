"""
Unified server configuration for kd_server.

This module centralizes:
- Defaults for all server settings
- Loading from environment variables
- Optional .env file hydration (best-effort, only for allowed keys)
- Convenient helpers for label sets, selectors and derived paths

Usage:
    from kd_server.app.config import get_settings

    settings = get_settings()
    print(settings.namespace)

Notes:
- Environment variables always take precedence.
- The .env loader only populates allowed keys that are not already present in
  the process environment. This keeps side effects contained and predictable
  during tests and local runs.
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import dotenv_values

from kd_server.app import __version__

_LOGGER = logging.getLogger("kd_server")

# ----------------------------
# Helpers: env, parsing, types
# ----------------------------

_ALLOWED_DOTENV_KEYS = {
    # Cluster
    "KUBEDOCK_NAMESPACE",
    "KUBEDOCK_KUBECONFIG",
    "KUBEDOCK_INSTANCE_ID",
    "KUBEDOCK_LABELS",
    "KUBEDOCK_ANNOTATIONS",
    # Volumes
    "KUBEDOCK_VOLUME_STORAGE_CLASS",
    "KUBEDOCK_VOLUME_SIZE",
    "KUBEDOCK_VOLUME_ACCESS_MODE",
    "KUBEDOCK_VOLUME_MOUNT_PREFIX",
    # Networks
    "KUBEDOCK_PREDEFINED_NETWORKS",
    # Events
    "KUBEDOCK_EVENT_BUFFER_SIZE",
    "KUBEDOCK_EVENTS_POLL_SECONDS",
    # Cleanup
    "KUBEDOCK_PRUNE_START",
    "KUBEDOCK_PRUNE_EXIT",
    # Metadata
    "KUBEDOCK_VERSION",
    "DOCKER_API_VERSION",
    "LIBPOD_API_VERSION",
    "LOG_LEVEL",
    # CORS
    "CORS_ALLOW_ORIGINS",
}

LABEL_MANAGED = "kubedock"
LABEL_INSTANCE_ID = "kubedock.id"


def _str2bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    s = val.strip().lower()
    return s in ("1", "true", "yes", "y", "on")


def _split_csv(s: str | None) -> List[str]:
    if not s:
        return []
    return [part.strip() for part in s.split(",") if part.strip()]


def _parse_key_values(s: str | None) -> Dict[str, str]:
    """
    Parse 'a=1,b=2' into a dict. Entries without '=' are ignored.
    """
    out: Dict[str, str] = {}
    for part in _split_csv(s):
        if "=" not in part:
            _LOGGER.warning("Ignoring malformed key=value setting entry: %r", part)
            continue
        key, val = part.split("=", 1)
        key = key.strip()
        if key:
            out[key] = val.strip()
    return out


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _load_dotenv_into_env(dotenv_path: Optional[Path] = None, allowed_keys: Optional[set[str]] = None) -> None:
    """
    Best-effort .env loader:
    - Loads from the nearest .env above this file by default
    - Only sets variables from allowed_keys if not already present in os.environ
    """
    if dotenv_path:
        path = Path(dotenv_path)
    else:
        path = None
        here = Path(__file__).resolve()
        for ancestor in list(here.parents)[:5]:
            candidate = ancestor / ".env"
            if candidate.is_file():
                path = candidate
                break
        if path is None:
            return
    if not path.is_file():
        return
    allow = set(allowed_keys or _ALLOWED_DOTENV_KEYS)
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as exc:
        # Never fail startup due to .env parsing
        _LOGGER.warning("Ignoring unreadable .env file %s: %s", path, exc)
        return
    for key, val in values.items():
        if key in allow and key not in os.environ and val is not None:
            os.environ[key] = val


# ----------------------------
# Unified configuration object
# ----------------------------

@dataclass(frozen=True)
class ServerConfig:
    """
    Unified configuration for kd_server.

    All fields are immutable once created. Use from_env() to construct an instance.
    """

    # Cluster
    namespace: str = "default"
    kubeconfig: Optional[str] = None
    instance_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    default_labels: Dict[str, str] = field(default_factory=dict)
    default_annotations: Dict[str, str] = field(default_factory=dict)

    # Volumes
    volume_storage_class: str = ""
    volume_size: str = "1Gi"
    volume_access_mode: str = "ReadWriteOnce"
    volume_mount_prefix: str = "/var/lib/kubedock/volumes/"

    # Networks
    predefined_networks: List[str] = field(default_factory=lambda: ["bridge", "host", "null"])

    # Events
    event_buffer_size: int = 256
    events_poll_seconds: float = 1.0

    # Cleanup
    prune_start: bool = False
    prune_exit: bool = True

    # CORS and service metadata
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    service_version: str = __version__
    docker_api_version: str = "1.41"
    libpod_api_version: str = "4.2.0"
    log_level: str = "INFO"

    @staticmethod
    def from_env(dotenv: bool = True, dotenv_path: Optional[str | Path] = None) -> "ServerConfig":
        """
        Construct ServerConfig with values pulled from the current environment,
        optionally hydrated by a .env file if dotenv=True.
        """
        if dotenv:
            _load_dotenv_into_env(Path(dotenv_path) if dotenv_path else None, _ALLOWED_DOTENV_KEYS)

        instance_id = os.getenv("KUBEDOCK_INSTANCE_ID") or uuid.uuid4().hex[:8]
        predefined = _split_csv(os.getenv("KUBEDOCK_PREDEFINED_NETWORKS", "bridge,host,null"))

        buffer_size = max(1, _int_env("KUBEDOCK_EVENT_BUFFER_SIZE", 256))
        poll = _float_env("KUBEDOCK_EVENTS_POLL_SECONDS", 1.0)
        if poll <= 0:
            poll = 1.0

        mount_prefix = os.getenv("KUBEDOCK_VOLUME_MOUNT_PREFIX", "/var/lib/kubedock/volumes/")
        if not mount_prefix.endswith("/"):
            mount_prefix += "/"

        return ServerConfig(
            namespace=os.getenv("KUBEDOCK_NAMESPACE", "default"),
            kubeconfig=os.getenv("KUBEDOCK_KUBECONFIG") or None,
            instance_id=instance_id,
            default_labels=_parse_key_values(os.getenv("KUBEDOCK_LABELS")),
            default_annotations=_parse_key_values(os.getenv("KUBEDOCK_ANNOTATIONS")),
            volume_storage_class=os.getenv("KUBEDOCK_VOLUME_STORAGE_CLASS", ""),
            volume_size=os.getenv("KUBEDOCK_VOLUME_SIZE", "1Gi"),
            volume_access_mode=os.getenv("KUBEDOCK_VOLUME_ACCESS_MODE", "ReadWriteOnce"),
            volume_mount_prefix=mount_prefix,
            predefined_networks=predefined or ["bridge"],
            event_buffer_size=buffer_size,
            events_poll_seconds=poll,
            prune_start=_str2bool(os.getenv("KUBEDOCK_PRUNE_START"), default=False),
            prune_exit=_str2bool(os.getenv("KUBEDOCK_PRUNE_EXIT"), default=True),
            cors_allow_origins=_split_csv(os.getenv("CORS_ALLOW_ORIGINS", "*")) or ["*"],
            service_version=os.getenv("KUBEDOCK_VERSION", __version__),
            docker_api_version=os.getenv("DOCKER_API_VERSION", "1.41"),
            libpod_api_version=os.getenv("LIBPOD_API_VERSION", "4.2.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    # ----------------------------
    # Derived helpers / utilities
    # ----------------------------

    def system_labels(self) -> Dict[str, str]:
        """
        Labels put on every orchestration-platform resource this instance owns.
        """
        return {LABEL_MANAGED: "true", LABEL_INSTANCE_ID: self.instance_id}

    def instance_selector(self) -> str:
        """
        Label selector matching resources created by this server instance.
        """
        return f"{LABEL_INSTANCE_ID}={self.instance_id}"

    def owned_selector(self) -> str:
        """
        Label selector matching resources created by any kd_server instance.
        """
        return f"{LABEL_MANAGED}=true"

    def mountpoint_for(self, volume_name: str) -> str:
        return f"{self.volume_mount_prefix}{volume_name}"


# ----------------------------
# Cached accessor
# ----------------------------

@lru_cache(maxsize=1)
def get_settings() -> ServerConfig:
    """
    Cached settings accessor. Safe to import and call across the app.
    """
    return ServerConfig.from_env(dotenv=True)


__all__ = [
    "LABEL_MANAGED",
    "LABEL_INSTANCE_ID",
    "ServerConfig",
    "get_settings",
]
