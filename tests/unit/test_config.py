import os

import pytest

from kd_server.app.config import ServerConfig

pytestmark = pytest.mark.unit


def test_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("KUBEDOCK_NAMESPACE", "ci")
    monkeypatch.setenv("KUBEDOCK_INSTANCE_ID", "abc123")
    monkeypatch.setenv("KUBEDOCK_LABELS", "team=qa, broken ,cost=1")
    monkeypatch.setenv("KUBEDOCK_VOLUME_MOUNT_PREFIX", "/mnt/vols")
    monkeypatch.setenv("KUBEDOCK_PREDEFINED_NETWORKS", "bridge")
    monkeypatch.setenv("KUBEDOCK_EVENT_BUFFER_SIZE", "nope")
    monkeypatch.setenv("KUBEDOCK_PRUNE_START", "yes")

    cfg = ServerConfig.from_env(dotenv=False)
    assert cfg.namespace == "ci"
    assert cfg.default_labels == {"team": "qa", "cost": "1"}
    assert cfg.mountpoint_for("data") == "/mnt/vols/data"
    assert cfg.predefined_networks == ["bridge"]
    assert cfg.event_buffer_size == 256
    assert cfg.prune_start is True
    assert cfg.prune_exit is True
    assert cfg.system_labels() == {"kubedock": "true", "kubedock.id": "abc123"}
    assert cfg.instance_selector() == "kubedock.id=abc123"
    assert cfg.owned_selector() == "kubedock=true"


def test_dotenv_does_not_override_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("KUBEDOCK_NAMESPACE=from-file\nKUBEDOCK_VOLUME_SIZE=3Gi\nUNRELATED=1\n")
    # The loader writes into os.environ; give it a throwaway copy
    monkeypatch.setattr(os, "environ", os.environ.copy())
    os.environ["KUBEDOCK_NAMESPACE"] = "from-env"
    os.environ.pop("KUBEDOCK_VOLUME_SIZE", None)
    os.environ.pop("UNRELATED", None)

    cfg = ServerConfig.from_env(dotenv=True, dotenv_path=env_file)
    assert cfg.namespace == "from-env"
    assert cfg.volume_size == "3Gi"
    assert "UNRELATED" not in os.environ
