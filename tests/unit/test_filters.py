import logging

import pytest

from kd_server.app.entities import Volume
from kd_server.app.errors import FilterError
from kd_server.app.filters import Filter, parse_filters

pytestmark = pytest.mark.unit


def test_empty_filter_matches_everything():
    for encoded in (None, "", "   ", "{}"):
        filtr = Filter.from_query(encoded)
        assert filtr.is_empty()
        assert filtr.match(Volume(name="anything"))


def test_or_within_type_and_across_types():
    vol = Volume(name="data", labels={"env": "test"})
    assert Filter.from_query('{"name": ["nope", "data"]}').match(vol)
    assert not Filter.from_query('{"name": ["nope", "other"]}').match(vol)
    assert Filter.from_query('{"name": ["data"], "label": ["env=test"]}').match(vol)
    assert not Filter.from_query('{"name": ["data"], "label": ["env=prod"]}').match(vol)


def test_entry_split_at_first_equals():
    filtr = Filter.from_query('{"label": ["url=http://x?a=b", "bare"]}')
    assert filtr.entries["label"] == [("url", "http://x?a=b"), ("bare", "")]


def test_legacy_map_form():
    filtr = Filter.from_query('{"label": {"env=test": true, "env=prod": false}}')
    assert filtr.entries == {"label": [("env", "test")]}


@pytest.mark.parametrize("encoded", ["{not json", "[1, 2]", '{"label": [1]}', '{"label": 3}'])
def test_malformed_raises(encoded):
    with pytest.raises(FilterError):
        Filter.from_query(encoded)


def test_parse_filters_degrades_to_accept_all(caplog):
    with caplog.at_level(logging.WARNING, logger="kd_server.filters"):
        filtr = parse_filters("{broken")
    assert filtr.is_empty()
    assert "unsupported filter" in caplog.text


def test_bad_pattern_during_match_counts_as_match(caplog):
    filtr = Filter.from_query('{"name": ["data["]}')
    with caplog.at_level(logging.WARNING, logger="kd_server.filters"):
        assert filtr.match(Volume(name="other"))
    assert "accepting" in caplog.text
