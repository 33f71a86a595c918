from __future__ import annotations

"""
Streaming event endpoints.

Each request subscribes to the app's EventBus and receives one JSON object
per line until the client goes away.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from kd_server.app.config import ServerConfig
from kd_server.app.deps import get_events, get_settings
from kd_server.app.events import EventBus, docker_event_json, event_stream, libpod_event_json
from kd_server.app.filters import parse_filters

_LOGGER = logging.getLogger("kd_server.routers.events")

router = APIRouter(tags=["events"])


@router.get("/events")
async def events(
    request: Request,
    filters: Optional[str] = Query(default=None),
    bus: EventBus = Depends(get_events),
    settings: ServerConfig = Depends(get_settings),
) -> StreamingResponse:
    stream = event_stream(
        request,
        bus,
        parse_filters(filters, _LOGGER),
        render=docker_event_json,
        poll_seconds=settings.events_poll_seconds,
    )
    return StreamingResponse(stream, media_type="application/json")


@router.get("/libpod/events")
async def libpod_events(
    request: Request,
    filters: Optional[str] = Query(default=None),
    bus: EventBus = Depends(get_events),
    settings: ServerConfig = Depends(get_settings),
) -> StreamingResponse:
    stream = event_stream(
        request,
        bus,
        parse_filters(filters, _LOGGER),
        render=libpod_event_json,
        poll_seconds=settings.events_poll_seconds,
    )
    return StreamingResponse(stream, media_type="application/json")


__all__ = ["router"]
