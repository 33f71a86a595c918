import logging
import threading

import pytest

from fakes import FakeClaimClient
from kd_server.app.backend.claims import VolumeClaims
from kd_server.app.backend.networks import NetworkService
from kd_server.app.backend.volumes import VolumeService
from kd_server.app.config import ServerConfig
from kd_server.app.entities import Container
from kd_server.app.errors import ClaimError, ConflictError, NotFoundError, PredefinedNetworkError
from kd_server.app.events import EventBus
from kd_server.app.filters import Filter
from kd_server.app.store import EntityStore

pytestmark = pytest.mark.unit


@pytest.fixture
def store() -> EntityStore:
    store = EntityStore()
    store.seed_networks(["bridge", "host", "null"])
    return store


@pytest.fixture
def volume_service(store: EntityStore, settings: ServerConfig, fake_claims: FakeClaimClient) -> VolumeService:
    return VolumeService(store, VolumeClaims(fake_claims, settings), EventBus())


@pytest.fixture
def network_service(store: EntityStore) -> NetworkService:
    return NetworkService(store, EventBus())


# --------------------------
# Volumes
# --------------------------

def test_volume_create_is_idempotent(volume_service: VolumeService, fake_claims: FakeClaimClient):
    vol, created = volume_service.create("data", labels={"env": "test"})
    again, created_again = volume_service.create("data", labels={"env": "prod"})

    assert created and not created_again
    assert again is vol
    assert vol.labels == {"env": "test"}
    assert vol.short_id == vol.id[:12]
    assert fake_claims.created == ["kubedock-vol-data"]


def test_anonymous_volume_gets_generated_name(volume_service: VolumeService):
    vol, _ = volume_service.create("")
    assert len(vol.name) == 64


def test_volume_create_failure_leaves_no_entity(volume_service: VolumeService, fake_claims: FakeClaimClient):
    fake_claims.fail_create.add("kubedock-vol-data")
    with pytest.raises(ClaimError):
        volume_service.create("data")
    assert volume_service.list() == []


def test_volume_remove_is_best_effort_on_cluster(volume_service: VolumeService, fake_claims: FakeClaimClient):
    volume_service.create("data")
    fake_claims.fail_delete.add("kubedock-vol-data")

    removed = volume_service.remove("data")
    assert removed.name == "data"
    assert volume_service.list() == []
    with pytest.raises(NotFoundError):
        volume_service.remove("data")


def test_volume_prune_applies_filter(volume_service: VolumeService, fake_claims: FakeClaimClient):
    volume_service.create("keep", labels={"tier": "db"})
    volume_service.create("drop", labels={"tier": "tmp"})

    report = volume_service.prune(Filter.from_query('{"label": ["tier=tmp"]}'))
    assert [v.name for v in report.removed] == ["drop"]
    assert report.space_reclaimed == 0
    assert [v.name for v in volume_service.list()] == ["keep"]
    assert fake_claims.deleted == ["kubedock-vol-drop"]


class _GatedClaimClient(FakeClaimClient):
    """Holds create of one claim name until released."""

    def __init__(self, gated: str) -> None:
        super().__init__()
        self.gated = gated
        self.started = threading.Event()
        self.release = threading.Event()

    def create(self, claim):
        if claim.metadata.name == self.gated:
            self.started.set()
            self.release.wait(timeout=5)
        return super().create(claim)


def test_slow_claim_create_does_not_block_other_volume_calls(store: EntityStore, settings: ServerConfig):
    gated = _GatedClaimClient("kubedock-vol-slow")
    service = VolumeService(store, VolumeClaims(gated, settings), EventBus())
    creator = threading.Thread(target=service.create, args=("slow",))
    creator.start()
    try:
        assert gated.started.wait(timeout=5)
        outcome = []
        other = threading.Thread(target=lambda: outcome.append((service.list(), service.create("fast")[1])))
        other.start()
        other.join(timeout=2)
        assert not other.is_alive()
        assert outcome == [([], True)]
    finally:
        gated.release.set()
        creator.join(timeout=5)
    assert sorted(v.name for v in service.list()) == ["fast", "slow"]
    assert sorted(gated.created) == ["kubedock-vol-fast", "kubedock-vol-slow"]


def test_shared_claim_survives_until_last_volume_is_removed(
    volume_service: VolumeService, fake_claims: FakeClaimClient, caplog
):
    volume_service.create("Data")
    with caplog.at_level(logging.WARNING, logger="kd_server.volumes"):
        volume_service.create("data")
    assert "already used by volume Data" in caplog.text
    assert list(fake_claims.claims) == ["kubedock-vol-data"]

    volume_service.remove("Data")
    assert "kubedock-vol-data" in fake_claims.claims
    assert fake_claims.deleted == []

    volume_service.remove("data")
    assert fake_claims.claims == {}
    assert fake_claims.deleted == ["kubedock-vol-data"]


def test_volume_prune_deletes_shared_claim_once(volume_service: VolumeService, fake_claims: FakeClaimClient):
    volume_service.create("Data")
    volume_service.create("data")

    report = volume_service.prune()
    assert sorted(v.name for v in report.removed) == ["Data", "data"]
    assert fake_claims.deleted == ["kubedock-vol-data"]
    assert report.failed == []


# --------------------------
# Networks
# --------------------------

def test_network_create_and_membership(store: EntityStore, network_service: NetworkService):
    netw, created = network_service.create("backend", labels={"a": "b"})
    assert created
    assert network_service.create("backend")[0] is netw

    store.containers.save(Container(name="web"))
    tainr = network_service.connect("backend", "web", ["Web", "frontend"])
    assert netw.id in tainr.networks
    assert tainr.network_aliases == ["web", "frontend"]
    assert network_service.containers_in(netw) == [tainr]

    with pytest.raises(ConflictError):
        network_service.remove("backend")

    network_service.disconnect("backend", "web")
    with pytest.raises(NotFoundError):
        network_service.disconnect("backend", "web")
    assert network_service.remove(netw.id) is netw


def test_predefined_networks_are_protected(store: EntityStore, network_service: NetworkService):
    store.containers.save(Container(name="web"))
    network_service.connect("bridge", "web")

    with pytest.raises(PredefinedNetworkError):
        network_service.remove("host")
    with pytest.raises(PredefinedNetworkError):
        network_service.disconnect("bridge", "web")


def test_connect_unknown_entities(store: EntityStore, network_service: NetworkService):
    network_service.create("backend")
    with pytest.raises(NotFoundError):
        network_service.connect("nope", "web")
    with pytest.raises(NotFoundError):
        network_service.connect("backend", "web")


def test_network_prune_skips_predefined_and_attached(store: EntityStore, network_service: NetworkService):
    network_service.create("used")
    network_service.create("unused")
    store.containers.save(Container(name="web"))
    network_service.connect("used", "web")

    report = network_service.prune()
    assert [n.name for n in report.removed] == ["unused"]
    assert sorted(n.name for n in network_service.list()) == ["bridge", "host", "null", "used"]


def test_network_list_type_filter(network_service: NetworkService):
    network_service.create("custom-net")
    builtin = network_service.list(Filter.from_query('{"type": ["builtin"]}'))
    custom = network_service.list(Filter.from_query('{"type": ["custom"]}'))
    assert sorted(n.name for n in builtin) == ["bridge", "host", "null"]
    assert [n.name for n in custom] == ["custom-net"]
