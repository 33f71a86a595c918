from __future__ import annotations

"""
Network endpoints for the Docker and libpod dialects.

Networks only live in the entity store, so none of these handlers reach the
cluster. Errors raised by NetworkService (NotFoundError, ConflictError,
PredefinedNetworkError) are rendered by the app-level exception handler.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from kd_server.app.backend.networks import NetworkService
from kd_server.app.deps import get_network_service
from kd_server.app.errors import ConflictError
from kd_server.app.filters import parse_filters
from kd_server.app.models import (
    LibpodNetworkConnectRequest,
    LibpodNetworkCreateRequest,
    LibpodNetworkDisconnectRequest,
    NetworkConnectRequest,
    NetworkCreateRequest,
    NetworkDisconnectRequest,
)
from kd_server.app.presenters import network_to_docker, network_to_libpod

_LOGGER = logging.getLogger("kd_server.routers.networks")

router = APIRouter(tags=["networks"])


# --------------------------
# Docker dialect
# --------------------------

@router.get("/networks")
async def list_networks(
    filters: Optional[str] = Query(default=None),
    networks: NetworkService = Depends(get_network_service),
) -> List[Dict[str, Any]]:
    filtr = parse_filters(filters, _LOGGER)
    return [network_to_docker(netw, networks.containers_in(netw)) for netw in networks.list(filtr)]


@router.post("/networks/create", status_code=status.HTTP_201_CREATED)
async def create_network(
    payload: NetworkCreateRequest,
    networks: NetworkService = Depends(get_network_service),
) -> Dict[str, Any]:
    netw, created = networks.create(payload.name, payload.labels, payload.driver)
    if not created and payload.check_duplicate:
        raise ConflictError(f"network with name {payload.name} already exists")
    return {"Id": netw.id, "Warning": ""}


@router.post("/networks/prune")
async def prune_networks(
    filters: Optional[str] = Query(default=None),
    networks: NetworkService = Depends(get_network_service),
) -> Dict[str, Any]:
    report = networks.prune(parse_filters(filters, _LOGGER))
    return {"NetworksDeleted": [netw.name for netw in report.removed]}


@router.get("/networks/{ref}")
async def inspect_network(
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> Dict[str, Any]:
    netw = networks.get(ref)
    return network_to_docker(netw, networks.containers_in(netw))


@router.delete("/networks/{ref}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_network(
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> Response:
    networks.remove(ref)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/networks/{ref}/connect")
async def connect_network(
    payload: NetworkConnectRequest,
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> Response:
    networks.connect(ref, payload.container, payload.aliases())
    return Response(status_code=status.HTTP_200_OK)


@router.post("/networks/{ref}/disconnect")
async def disconnect_network(
    payload: NetworkDisconnectRequest,
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> Response:
    networks.disconnect(ref, payload.container)
    return Response(status_code=status.HTTP_200_OK)


# --------------------------
# libpod dialect
# --------------------------

@router.get("/libpod/networks/json")
async def libpod_list_networks(
    filters: Optional[str] = Query(default=None),
    networks: NetworkService = Depends(get_network_service),
) -> List[Dict[str, Any]]:
    filtr = parse_filters(filters, _LOGGER)
    return [network_to_libpod(netw) for netw in networks.list(filtr)]


@router.post("/libpod/networks/create")
async def libpod_create_network(
    payload: LibpodNetworkCreateRequest,
    networks: NetworkService = Depends(get_network_service),
) -> Dict[str, Any]:
    # An existing name is returned as-is, podman clients rely on this
    netw, _ = networks.create(payload.name, payload.labels, payload.driver)
    return network_to_libpod(netw)


@router.post("/libpod/networks/prune")
async def libpod_prune_networks(
    filters: Optional[str] = Query(default=None),
    networks: NetworkService = Depends(get_network_service),
) -> List[Dict[str, Any]]:
    report = networks.prune(parse_filters(filters, _LOGGER))
    return [network_to_libpod(netw) for netw in report.removed]


@router.get("/libpod/networks/{ref}/json")
async def libpod_inspect_network(
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> Dict[str, Any]:
    return network_to_libpod(networks.get(ref))


@router.get("/libpod/networks/{ref}/exists", status_code=status.HTTP_204_NO_CONTENT)
async def libpod_network_exists(
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> Response:
    networks.get(ref)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/libpod/networks/{ref}")
async def libpod_delete_network(
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> List[Dict[str, Any]]:
    return [network_to_libpod(networks.remove(ref))]


@router.post("/libpod/networks/{ref}/connect")
async def libpod_connect_network(
    payload: LibpodNetworkConnectRequest,
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> Dict[str, Any]:
    networks.connect(ref, payload.container, payload.aliases)
    return {}


@router.post("/libpod/networks/{ref}/disconnect")
async def libpod_disconnect_network(
    payload: LibpodNetworkDisconnectRequest,
    ref: str = Path(...),
    networks: NetworkService = Depends(get_network_service),
) -> Response:
    networks.disconnect(ref, payload.container)
    return Response(status_code=status.HTTP_200_OK)


__all__ = ["router"]
