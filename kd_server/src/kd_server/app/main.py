from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load environment from optional .env file before instantiating settings
_SERVER_ENV_FILE = os.getenv("KD_SERVER_ENV_FILE", ".env.server")
if _SERVER_ENV_FILE and Path(_SERVER_ENV_FILE).is_file():
    load_dotenv(_SERVER_ENV_FILE)

from kd_server.app.backend.claims import VolumeClaims
from kd_server.app.backend.kube import ClaimClient, KubernetesClaimClient
from kd_server.app.backend.networks import NetworkService
from kd_server.app.backend.volumes import VolumeService
from kd_server.app.config import ServerConfig, get_settings
from kd_server.app.errors import KubedockError
from kd_server.app.events import EventBus
from kd_server.app.logging_setup import initialize_from_env
from kd_server.app.middleware import LibpodHeadersMiddleware, VersionPrefixMiddleware
from kd_server.app.routers import events, networks, system, volumes
from kd_server.app.store import EntityStore

logger = logging.getLogger("kd_server")
_LOG_PATH = initialize_from_env(service_name="kd_server")
logger.info(f"kd_server logging to file: {_LOG_PATH}")


def connect_cluster(settings: ServerConfig) -> KubernetesClaimClient:
    """
    Build the claim client and verify the namespace is reachable before the
    API starts serving requests. Volumes are useless without the cluster, so
    we fail fast: exits the process with a non-zero status if it is not.
    """
    try:
        claims = KubernetesClaimClient.from_settings(settings)
        claims.ping()
    except Exception as e:
        logger.critical(
            "Kubernetes is not available. kd_server cannot start without access to "
            f"namespace '{settings.namespace}'. Check KUBEDOCK_KUBECONFIG or the "
            f"in-cluster service account. Details: {e}"
        )
        raise SystemExit(1)
    return claims


def prune_claims(translator: VolumeClaims, selector: str, when: str) -> None:
    """
    Delete every claim matching selector; failures are logged, never raised.
    """
    try:
        results = translator.delete_volumes(selector)
    except KubedockError as e:
        logger.warning(f"Claim cleanup at {when} failed for '{selector}': {e}")
        return
    failed = [res for res in results if not res.deleted]
    logger.info(
        f"Claim cleanup at {when}: {len(results) - len(failed)} deleted, "
        f"{len(failed)} failed (selector '{selector}')"
    )


def create_app(settings: Optional[ServerConfig] = None, claims: Optional[ClaimClient] = None) -> FastAPI:
    """
    Build the kd_server application.

    settings defaults to the cached environment config. When claims is given
    it replaces the Kubernetes client and the startup cluster check is skipped.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        claim_client = claims if claims is not None else await asyncio.to_thread(connect_cluster, settings)
        translator = VolumeClaims(claim_client, settings)

        if settings.prune_start:
            await asyncio.to_thread(prune_claims, translator, settings.owned_selector(), "startup")

        store = EntityStore()
        store.seed_networks(settings.predefined_networks)
        bus = EventBus(settings.event_buffer_size)

        app.state.store = store
        app.state.events = bus
        app.state.volumes = VolumeService(store, translator, bus)
        app.state.networks = NetworkService(store, bus)
        logger.info(f"kd_server startup complete (instance {settings.instance_id}, namespace {settings.namespace}).")

        try:
            yield
        finally:
            if settings.prune_exit:
                await asyncio.to_thread(prune_claims, translator, settings.instance_selector(), "shutdown")
            logger.info("kd_server shutdown complete.")

    app = FastAPI(
        title="kd_server",
        version=settings.service_version,
        description="Docker and libpod compatible API backed by Kubernetes.",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS: permissive by default; lock down in deployment via env vars if needed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LibpodHeadersMiddleware, api_version=settings.libpod_api_version)
    # Added last so it runs first: routes never see the /v1.xx prefix
    app.add_middleware(VersionPrefixMiddleware)

    @app.exception_handler(KubedockError)
    async def kubedock_error_handler(request: Request, exc: KubedockError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    app.include_router(system.router)
    app.include_router(volumes.router)
    app.include_router(networks.router)
    app.include_router(events.router)

    @app.get("/health")
    async def health() -> dict:
        """
        Basic health probe; intentionally unauthenticated.
        """
        return {
            "status": "ok",
            "service": "kd_server",
            "version": app.version,
        }

    return app


app = create_app()
