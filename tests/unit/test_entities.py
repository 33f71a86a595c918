import pytest

from kd_server.app.entities import Container, Event, Network, Volume, gen_id, short_id
from kd_server.app.errors import FilterError, NotFoundError

pytestmark = pytest.mark.unit


def _vol(labels=None) -> Volume:
    return Volume(name="myvolume", driver="local", labels=labels)


@pytest.mark.parametrize(
    "vol, typ, key, val, expected",
    [
        (_vol({"env": "test"}), "label", "env", "test", True),
        (_vol({"env": "test"}), "label", "env", "prod", False),
        (_vol({"env": "test"}), "label", "missing", "test", False),
        (_vol(), "name", "myvolume", "", True),
        (_vol(), "name", "other", "", False),
        (_vol(), "name", "my.*", "", True),
        (_vol(), "driver", "local", "", True),
        (_vol(), "driver", "nfs", "", False),
        (_vol(), "unknown", "foo", "bar", True),
    ],
)
def test_volume_match(vol, typ, key, val, expected):
    assert vol.match(typ, key, val) is expected


def test_volume_defaults_and_null_labels():
    vol = Volume(name="data", driver="", labels=None)
    assert vol.driver == "local"
    assert vol.labels == {}


def test_invalid_name_pattern_raises_filter_error():
    with pytest.raises(FilterError):
        _vol().match("name", "my[", "")


def test_ids():
    ident = gen_id()
    assert len(ident) == 64
    assert short_id(ident) == ident[:12]
    assert gen_id() != ident


def test_network_match():
    netw = Network(name="bridge", predefined=True, id="abcdef0123456789", labels={"a": "b"})
    assert netw.match("type", "builtin", "")
    assert not netw.match("type", "custom", "")
    assert netw.match("id", "abcdef", "")
    assert not netw.match("id", "", "")
    assert netw.match("label", "a", "b")
    assert netw.match("driver", "bridge", "")
    assert netw.is_predefined()


def test_container_network_membership_and_aliases():
    tainr = Container(name="web")
    tainr.connect_network("n1")
    tainr.connect_network("n1")
    assert tainr.networks == {"n1"}

    added = tainr.add_network_aliases(["DB", "db", "cache"])
    assert added == ["db", "cache"]
    assert tainr.add_network_aliases(["Cache"]) == []
    assert tainr.network_aliases == ["db", "cache"]

    tainr.disconnect_network("n1")
    assert tainr.networks == set()
    with pytest.raises(NotFoundError):
        tainr.disconnect_network("n1")


def test_container_match_name_strips_slash():
    tainr = Container(name="web", id="0123456789abcdef")
    assert tainr.match("name", "/web", "")
    assert tainr.match("id", "0123", "")
    assert not tainr.match("network", "n1", "")


def test_event_match():
    ev = Event.now("volume", "create", "data")
    assert ev.time_nano // 1_000_000_000 == ev.time
    assert ev.match("type", "volume", "")
    assert not ev.match("type", "network", "")
    assert ev.match("event", "create", "")
    assert ev.match("volume", "data", "")
    assert not ev.match("volume", "other", "")
    # subject filters of another kind do not constrain this event
    assert ev.match("container", "abc", "")


def test_aliases_are_case_folded_once():
    tainr = Container(name="c")
    tainr.add_network_aliases(["Web", "web", "API"])
    assert tainr.network_aliases == ["web", "api"]
