"""Command-line entry point for kd_server."""

from __future__ import annotations

import os

import uvicorn


def main() -> None:
    """Serve kd_server.app.main:app with uvicorn.

    Bind address and port come from KD_SERVER_HOST / KD_SERVER_PORT
    (default 0.0.0.0:2475, the port Docker clients are pointed at via
    DOCKER_HOST=tcp://...:2475).
    """
    host = os.getenv("KD_SERVER_HOST", "0.0.0.0")
    port = int(os.getenv("KD_SERVER_PORT", "2475"))
    log_level = os.getenv("LOG_LEVEL", "info").lower()
    uvicorn.run("kd_server.app.main:app", host=host, port=port, log_level=log_level)


if __name__ == "__main__":
    main()
