from __future__ import annotations

"""
Engine identity endpoints: ping, version and libpod info.

Clients probe these before anything else to pick an API version, so they
stay cheap and never touch the cluster.
"""

import platform
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from kd_server.app.config import ServerConfig
from kd_server.app.deps import get_settings

router = APIRouter(tags=["system"])

_MIN_DOCKER_API_VERSION = "1.24"


def _version_body(settings: ServerConfig, api_version: str) -> Dict[str, Any]:
    return {
        "Version": settings.service_version,
        "ApiVersion": api_version,
        "MinAPIVersion": _MIN_DOCKER_API_VERSION,
        "GitCommit": "",
        "GoVersion": "",
        "Os": "linux",
        "Arch": platform.machine() or "amd64",
        "KernelVersion": platform.release(),
        "BuildTime": "",
        "Components": [
            {
                "Name": "Engine",
                "Version": settings.service_version,
                "Details": {"ApiVersion": api_version, "Os": "linux"},
            }
        ],
    }


def _ping_response(settings: ServerConfig) -> Response:
    return Response(
        content="OK",
        media_type="text/plain",
        headers={
            "API-Version": settings.docker_api_version,
            "Docker-Experimental": "false",
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
        },
    )


@router.api_route("/_ping", methods=["GET", "HEAD"])
async def ping(settings: ServerConfig = Depends(get_settings)) -> Response:
    return _ping_response(settings)


@router.get("/version")
async def version(settings: ServerConfig = Depends(get_settings)) -> Dict[str, Any]:
    return _version_body(settings, settings.docker_api_version)


@router.api_route("/libpod/_ping", methods=["GET", "HEAD"])
async def libpod_ping(settings: ServerConfig = Depends(get_settings)) -> Response:
    return _ping_response(settings)


@router.get("/libpod/version")
async def libpod_version(settings: ServerConfig = Depends(get_settings)) -> Dict[str, Any]:
    return _version_body(settings, settings.libpod_api_version)


@router.get("/libpod/info")
async def libpod_info(settings: ServerConfig = Depends(get_settings)) -> Dict[str, Any]:
    """
    Minimal podman info; clients mostly read host.os and version.
    """
    return {
        "host": {
            "arch": platform.machine() or "amd64",
            "os": "linux",
            "kernel": platform.release(),
            "hostname": "kubedock",
            "remoteSocket": {"exists": True},
            "networkBackend": "kubedock",
        },
        "store": {"volumePath": settings.volume_mount_prefix.rstrip("/")},
        "registries": {},
        "version": {
            "APIVersion": settings.libpod_api_version,
            "Version": settings.service_version,
            "OsArch": "linux/" + (platform.machine() or "amd64"),
        },
    }


__all__ = ["router"]
