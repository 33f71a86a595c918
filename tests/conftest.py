# Pytest configuration for kd_server tests.
# - Makes kd_server/src and the tests directory importable without an editable install.
# - Registers a "kubernetes" marker for tests that require a reachable cluster and
#   skips them automatically when none is configured.
# - Provides settings / fake claim client / TestClient fixtures for unit tests.

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Iterator, Tuple

import pytest


def _add_sys_path(p: Path) -> None:
    """
    Prepend a filesystem path to sys.path if it's not already present.
    Ensures in-repo packages are importable without editable installs.
    """
    rp = str(p.resolve())
    if rp not in sys.path:
        sys.path.insert(0, rp)


_THIS_FILE = Path(__file__).resolve()
_TESTS_DIR = _THIS_FILE.parent                  # .../tests
_PROJECT_DIR = _TESTS_DIR.parent                # project root

_KD_SERVER_SRC = _PROJECT_DIR / "kd_server" / "src"
if _KD_SERVER_SRC.exists():
    _add_sys_path(_KD_SERVER_SRC)
# tests/fakes.py
_add_sys_path(_TESTS_DIR)

# Keep test logs out of the source tree
os.environ.setdefault("KD_LOG_DIR", str(Path(tempfile.gettempdir()) / "kd_server-tests"))
os.environ.setdefault("KD_SERVER_ENV_FILE", "")

from fastapi.testclient import TestClient  # noqa: E402

from fakes import FakeClaimClient  # noqa: E402
from kd_server.app.config import ServerConfig  # noqa: E402
from kd_server.app.main import create_app  # noqa: E402


def _kubernetes_available() -> Tuple[bool, str]:
    """
    Check if a cluster is reachable with the ambient kubeconfig.
    Returns (available, reason_if_unavailable).
    """
    from kd_server.app.backend.kube import KubernetesClaimClient

    settings = ServerConfig.from_env(dotenv=False)
    try:
        KubernetesClaimClient.from_settings(settings).ping()
        return True, ""
    except Exception as e:
        return False, f"Kubernetes cluster not reachable: {e} (set KUBEDOCK_KUBECONFIG or run inside a cluster)"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line(
        "markers",
        "kubernetes: mark test as requiring a Kubernetes cluster (skipped if unavailable)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if not any("kubernetes" in item.keywords for item in items):
        return
    available, reason = _kubernetes_available()
    if available:
        return
    skip_marker = pytest.mark.skip(reason=reason)
    for item in items:
        if "kubernetes" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def settings() -> ServerConfig:
    return ServerConfig(
        namespace="kd-test",
        instance_id="unittest",
        default_labels={"team": "qa"},
        default_annotations={"owner": "ci"},
        prune_exit=False,
        events_poll_seconds=0.05,
    )


@pytest.fixture
def fake_claims() -> FakeClaimClient:
    return FakeClaimClient()


@pytest.fixture
def client(settings: ServerConfig, fake_claims: FakeClaimClient) -> Iterator[TestClient]:
    app = create_app(settings=settings, claims=fake_claims)
    with TestClient(app) as c:
        yield c
