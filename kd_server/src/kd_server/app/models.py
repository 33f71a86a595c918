from __future__ import annotations

"""
Pydantic request models for the kd_server API.

Both dialects are covered:
- Docker Engine API bodies use CamelCase keys ("Name", "Labels", ...).
- libpod bodies use lower-case keys for networks and CamelCase for volumes.

Notes:
- Unknown keys are ignored; engine clients send plenty we do not use.
- Labels may arrive as null; they are normalized to an empty mapping and
  values are coerced to strings.
- A malformed body is rejected by FastAPI with 422 before reaching a route.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_labels(v: Any) -> Dict[str, str]:
    if v is not None and not isinstance(v, dict):
        raise ValueError("Labels must be an object")
    out: Dict[str, str] = {}
    for k, val in (v or {}).items():
        if not isinstance(k, str) or not k.strip():
            raise ValueError("Label keys must be non-empty strings")
        out[k] = val if isinstance(val, str) else str(val)
    return out


def _coerce_options(v: Any) -> Dict[str, str]:
    if v is not None and not isinstance(v, dict):
        raise ValueError("Options must be an object")
    return {str(k): str(val) for k, val in (v or {}).items()}


def _coerce_aliases(v: Any) -> List[str]:
    return [a for a in (v or []) if isinstance(a, str) and a.strip()]


class _EngineModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# -----------------------
# Volumes
# -----------------------

class VolumeCreateRequest(_EngineModel):
    """
    POST /volumes/create and POST /libpod/volumes/create.
    """
    name: str = Field(default="", alias="Name")
    driver: str = Field(default="", alias="Driver")
    driver_opts: Dict[str, str] = Field(default_factory=dict, alias="DriverOpts")
    options: Dict[str, str] = Field(default_factory=dict, alias="Options")
    labels: Dict[str, str] = Field(default_factory=dict, alias="Labels")

    @field_validator("name", "driver", mode="before")
    def v_optional_str(cls, v: Any) -> str:
        return "" if v is None else v

    @field_validator("driver_opts", "options", mode="before")
    def v_opts(cls, v: Any) -> Dict[str, str]:
        return _coerce_options(v)

    @field_validator("labels", mode="before")
    def v_labels(cls, v: Any) -> Dict[str, str]:
        return _coerce_labels(v)


# -----------------------
# Networks (Docker dialect)
# -----------------------

class NetworkCreateRequest(_EngineModel):
    name: str = Field(..., alias="Name", min_length=1)
    driver: str = Field(default="bridge", alias="Driver")
    labels: Dict[str, str] = Field(default_factory=dict, alias="Labels")
    internal: bool = Field(default=False, alias="Internal")
    check_duplicate: bool = Field(default=False, alias="CheckDuplicate")

    @field_validator("driver", mode="before")
    def v_driver(cls, v: Any) -> str:
        return v or "bridge"

    @field_validator("labels", mode="before")
    def v_labels(cls, v: Any) -> Dict[str, str]:
        return _coerce_labels(v)


class EndpointConfig(_EngineModel):
    aliases: List[str] = Field(default_factory=list, alias="Aliases")

    @field_validator("aliases", mode="before")
    def v_aliases(cls, v: Any) -> List[str]:
        return _coerce_aliases(v)


class NetworkConnectRequest(_EngineModel):
    container: str = Field(..., alias="Container", min_length=1)
    endpoint_config: Optional[EndpointConfig] = Field(default=None, alias="EndpointConfig")

    def aliases(self) -> List[str]:
        return list(self.endpoint_config.aliases) if self.endpoint_config else []


class NetworkDisconnectRequest(_EngineModel):
    container: str = Field(..., alias="Container", min_length=1)
    force: bool = Field(default=False, alias="Force")


# -----------------------
# Networks (libpod dialect)
# -----------------------

class LibpodNetworkCreateRequest(_EngineModel):
    name: str = Field(..., min_length=1)
    driver: str = Field(default="bridge")
    labels: Dict[str, str] = Field(default_factory=dict)
    options: Dict[str, str] = Field(default_factory=dict)
    internal: bool = False

    @field_validator("driver", mode="before")
    def v_driver(cls, v: Any) -> str:
        return v or "bridge"

    @field_validator("labels", mode="before")
    def v_labels(cls, v: Any) -> Dict[str, str]:
        return _coerce_labels(v)

    @field_validator("options", mode="before")
    def v_options(cls, v: Any) -> Dict[str, str]:
        return _coerce_options(v)


class LibpodNetworkConnectRequest(_EngineModel):
    container: str = Field(..., min_length=1)
    aliases: List[str] = Field(default_factory=list)

    @field_validator("aliases", mode="before")
    def v_aliases(cls, v: Any) -> List[str]:
        return _coerce_aliases(v)


class LibpodNetworkDisconnectRequest(_EngineModel):
    container: str = Field(..., min_length=1)
    force: bool = False


__all__ = [
    "VolumeCreateRequest",
    "NetworkCreateRequest",
    "EndpointConfig",
    "NetworkConnectRequest",
    "NetworkDisconnectRequest",
    "LibpodNetworkCreateRequest",
    "LibpodNetworkConnectRequest",
    "LibpodNetworkDisconnectRequest",
]
