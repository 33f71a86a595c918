from __future__ import annotations

"""
Shared FastAPI dependencies for kd_server.

The app factory (kd_server.app.main.create_app) builds one instance of each
collaborator and parks it on app.state:

- settings: ServerConfig
- events:   EventBus
- volumes:  VolumeService
- networks: NetworkService

Routes receive them through the accessors below, which keeps routers free of
module globals and lets tests build isolated apps.
"""

from fastapi import Request

from kd_server.app.backend.networks import NetworkService
from kd_server.app.backend.volumes import VolumeService
from kd_server.app.config import ServerConfig
from kd_server.app.events import EventBus


def get_settings(request: Request) -> ServerConfig:
    return request.app.state.settings


def get_events(request: Request) -> EventBus:
    return request.app.state.events


def get_volume_service(request: Request) -> VolumeService:
    return request.app.state.volumes


def get_network_service(request: Request) -> NetworkService:
    return request.app.state.networks


__all__ = [
    "get_settings",
    "get_events",
    "get_volume_service",
    "get_network_service",
]
