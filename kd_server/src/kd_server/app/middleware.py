from __future__ import annotations

"""
Pure ASGI middleware for engine compatibility.

- VersionPrefixMiddleware: Docker clients prefix every path with the API
  version ("/v1.41/volumes"). The prefix is stripped so one set of routes
  serves every version.
- LibpodHeadersMiddleware: adds the Libpod-API-Version header to responses of
  /libpod/ paths, which podman clients check.

Both are plain ASGI wrappers so that streamed responses (events) pass through
unbuffered.
"""

import re

from starlette.types import ASGIApp, Message, Receive, Scope, Send

_VERSION_PREFIX = re.compile(r"^/v\d+(?:\.\d+)?(?=/)")


class VersionPrefixMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            path = scope.get("path", "")
            stripped = _VERSION_PREFIX.sub("", path, count=1)
            if stripped != path:
                scope = dict(scope)
                scope["path"] = stripped
                scope["raw_path"] = stripped.encode("utf-8")
        await self.app(scope, receive, send)


class LibpodHeadersMiddleware:
    def __init__(self, app: ASGIApp, api_version: str) -> None:
        self.app = app
        self.api_version = api_version.encode("latin-1")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or "/libpod/" not in scope.get("path", ""):
            await self.app(scope, receive, send)
            return

        async def _send(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"libpod-api-version", self.api_version))
                message = dict(message)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, _send)


__all__ = ["VersionPrefixMiddleware", "LibpodHeadersMiddleware"]
