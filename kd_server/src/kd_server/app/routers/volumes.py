from __future__ import annotations

"""
Volume endpoints for the Docker and libpod dialects.

Both dialects share VolumeService; they differ only in paths and response
shapes. Calls that reach the cluster (create, delete, prune) run in a worker
thread so the event loop keeps serving event streams.

Notes:
- Re-creating an existing volume name returns the existing volume (201).
- Filters are parsed permissively: malformed input means "no filter".
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from kd_server.app.backend.volumes import VolumeService
from kd_server.app.config import ServerConfig
from kd_server.app.deps import get_settings, get_volume_service
from kd_server.app.filters import parse_filters
from kd_server.app.models import VolumeCreateRequest
from kd_server.app.presenters import volume_to_docker, volume_to_libpod

_LOGGER = logging.getLogger("kd_server.routers.volumes")

router = APIRouter(tags=["volumes"])


# --------------------------
# Docker dialect
# --------------------------

@router.post("/volumes/create", status_code=status.HTTP_201_CREATED)
async def create_volume(
    payload: VolumeCreateRequest,
    volumes: VolumeService = Depends(get_volume_service),
    settings: ServerConfig = Depends(get_settings),
) -> Dict[str, Any]:
    vol, _ = await asyncio.to_thread(volumes.create, payload.name, payload.driver, payload.labels)
    return volume_to_docker(vol, settings)


@router.get("/volumes")
async def list_volumes(
    filters: Optional[str] = Query(default=None),
    volumes: VolumeService = Depends(get_volume_service),
    settings: ServerConfig = Depends(get_settings),
) -> Dict[str, Any]:
    filtr = parse_filters(filters, _LOGGER)
    return {
        "Volumes": [volume_to_docker(vol, settings) for vol in volumes.list(filtr)],
        "Warnings": [],
    }


@router.post("/volumes/prune")
async def prune_volumes(
    filters: Optional[str] = Query(default=None),
    volumes: VolumeService = Depends(get_volume_service),
) -> Dict[str, Any]:
    report = await asyncio.to_thread(volumes.prune, parse_filters(filters, _LOGGER))
    return {
        "VolumesDeleted": [vol.name for vol in report.removed],
        "SpaceReclaimed": report.space_reclaimed,
    }


@router.get("/volumes/{ref}")
async def inspect_volume(
    ref: str = Path(...),
    volumes: VolumeService = Depends(get_volume_service),
    settings: ServerConfig = Depends(get_settings),
) -> Dict[str, Any]:
    return volume_to_docker(volumes.get(ref), settings)


@router.delete("/volumes/{ref}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_volume(
    ref: str = Path(...),
    force: bool = Query(default=False),
    volumes: VolumeService = Depends(get_volume_service),
) -> Response:
    await asyncio.to_thread(volumes.remove, ref)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --------------------------
# libpod dialect
# --------------------------

@router.post("/libpod/volumes/create", status_code=status.HTTP_201_CREATED)
async def libpod_create_volume(
    payload: VolumeCreateRequest,
    volumes: VolumeService = Depends(get_volume_service),
    settings: ServerConfig = Depends(get_settings),
) -> Dict[str, Any]:
    vol, _ = await asyncio.to_thread(volumes.create, payload.name, payload.driver, payload.labels)
    return volume_to_libpod(vol, settings)


@router.get("/libpod/volumes/json")
async def libpod_list_volumes(
    filters: Optional[str] = Query(default=None),
    volumes: VolumeService = Depends(get_volume_service),
    settings: ServerConfig = Depends(get_settings),
) -> List[Dict[str, Any]]:
    filtr = parse_filters(filters, _LOGGER)
    return [volume_to_libpod(vol, settings) for vol in volumes.list(filtr)]


@router.post("/libpod/volumes/prune")
async def libpod_prune_volumes(
    filters: Optional[str] = Query(default=None),
    volumes: VolumeService = Depends(get_volume_service),
) -> List[Dict[str, Any]]:
    report = await asyncio.to_thread(volumes.prune, parse_filters(filters, _LOGGER))
    return [{"Id": vol.id, "Size": 0} for vol in report.removed]


@router.get("/libpod/volumes/{name}/json")
async def libpod_inspect_volume(
    name: str = Path(...),
    volumes: VolumeService = Depends(get_volume_service),
    settings: ServerConfig = Depends(get_settings),
) -> Dict[str, Any]:
    return volume_to_libpod(volumes.get(name), settings)


@router.get("/libpod/volumes/{name}/exists", status_code=status.HTTP_204_NO_CONTENT)
async def libpod_volume_exists(
    name: str = Path(...),
    volumes: VolumeService = Depends(get_volume_service),
) -> Response:
    volumes.get(name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/libpod/volumes/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def libpod_delete_volume(
    name: str = Path(...),
    force: bool = Query(default=False),
    volumes: VolumeService = Depends(get_volume_service),
) -> Response:
    await asyncio.to_thread(volumes.remove, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
