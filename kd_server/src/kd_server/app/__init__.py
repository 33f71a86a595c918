"""
kd_server (FastAPI) - README-lite

Overview
- This package serves a container-engine compatible HTTP API in two dialects:
  the Docker Engine API and the libpod (Podman) API.
- Workloads never run locally. Volumes become Kubernetes PersistentVolumeClaims,
  networks are bookkeeping on top of container membership and DNS aliases.
- Clients (docker CLI, podman-remote, testcontainers, compose) believe they talk
  to a local engine.

Key Design Points
- Entity store: in-process, authoritative record of containers, networks and volumes.
  Lookups resolve by exact ID first, then by exact name.
- Filters: every list and prune endpoint accepts the engine "filters" query parameter.
  A malformed filter never fails a request; it is logged and ignored.
- Events: lifecycle changes are published on an in-process bus and streamed to
  GET /events and GET /libpod/events as JSON lines.
- Idempotency: creating a volume or network whose name exists returns the existing one.
  Deleting a volume whose claim is already gone succeeds.

Quickstart (local)
  1) From the repository root:
     $ python -m venv ./venv
     $ source ./venv/bin/activate
     $ pip install -e ".[test]"
  2) Point at a cluster (kubeconfig or in-cluster service account) and start:
     $ KUBEDOCK_NAMESPACE=sandbox KD_SERVER_HOST=127.0.0.1 kd-server
  3) Use it:
     $ DOCKER_HOST=tcp://127.0.0.1:2475 docker volume create cache

Core Endpoints (summary)
- Docker dialect (optionally prefixed with /v1.xx):
  - POST /volumes/create, GET /volumes, GET /volumes/{id}, DELETE /volumes/{id}, POST /volumes/prune
  - GET /networks, GET /networks/{id}, POST /networks/create, DELETE /networks/{id}
  - POST /networks/{id}/connect, POST /networks/{id}/disconnect, POST /networks/prune
  - GET /events, GET /_ping, GET /version
- libpod dialect:
  - POST /libpod/volumes/create, GET /libpod/volumes/json, GET /libpod/volumes/{name}/json,
    GET /libpod/volumes/{name}/exists, DELETE /libpod/volumes/{name}, POST /libpod/volumes/prune
  - GET /libpod/networks/json, GET /libpod/networks/{id}/json, GET /libpod/networks/{id}/exists,
    POST /libpod/networks/create, DELETE /libpod/networks/{id},
    POST /libpod/networks/{id}/connect, POST /libpod/networks/{id}/disconnect, POST /libpod/networks/prune
  - GET /libpod/events, GET /libpod/_ping, GET /libpod/version, GET /libpod/info
- GET /health (unauthenticated probe)

Environment Configuration (.env support)
- See kd_server.app.config for the full list. The most relevant keys:
- KUBEDOCK_NAMESPACE              # Namespace for claims (default: "default")
- KUBEDOCK_KUBECONFIG             # Kubeconfig path; unset = in-cluster, then default kubeconfig
- KUBEDOCK_VOLUME_STORAGE_CLASS   # Storage class for claims (default: cluster default)
- KUBEDOCK_VOLUME_SIZE            # Requested size per claim (default: "1Gi")
- KUBEDOCK_VOLUME_ACCESS_MODE     # ReadWriteOnce (default), ReadWriteMany/RWX, ReadOnlyMany/ROX
- KUBEDOCK_PRUNE_EXIT             # Delete this instance's claims on shutdown (default: "true")
- LOG_LEVEL                       # Logging level (default: "INFO")

Runtime Notes
- Usage data is never metered: SpaceReclaimed and Size are always reported as 0.
- Predefined networks (bridge, host, null) exist from startup and can neither be removed
  nor disconnected from.

Version
- Matches pyproject: 0.1.0
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
