"""
kd_server package

This package contains the kubedock compatibility server (FastAPI service):
a Docker-Engine and libpod compatible API whose volumes are backed by
Kubernetes persistent volume claims. It is intentionally lightweight at import
time and avoids importing the FastAPI app by default to prevent side effects
during module discovery or tooling (e.g., linting, type-checking).

Public surface:
- __version__: string version of the server package

To run the service with uvicorn (example):
    uvicorn kd_server.app.main:app --host 127.0.0.1 --port 2475
"""

from .app import __version__

__all__ = ["__version__"]
