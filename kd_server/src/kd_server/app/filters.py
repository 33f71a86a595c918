from __future__ import annotations

"""
The container-engine "filters" query parameter.

Format
    filters={"label": ["env=test", "tier"], "name": ["my.*"]}

The legacy map form {"label": {"env=test": true}} is accepted as well. Each
entry is split at the first '=' into a key and a value (empty when absent).

Semantics
- An empty filter matches every entity.
- Within one filter type, any entry may match (OR).
- Across filter types, every type must match (AND).
- Entities decide what a (type, key, value) triple means; see
  kd_server.app.entities. A FilterError raised while matching is logged and the
  entry counts as a match: list endpoints never fail on a client's bad filter.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from kd_server.app.entities import Matchable
from kd_server.app.errors import FilterError

_LOGGER = logging.getLogger("kd_server.filters")


def _split_entry(entry: str) -> Tuple[str, str]:
    key, _, value = entry.partition("=")
    return key, value


@dataclass(frozen=True)
class Filter:
    entries: Dict[str, List[Tuple[str, str]]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Filter":
        return cls()

    @classmethod
    def from_query(cls, encoded: Optional[str]) -> "Filter":
        """
        Parse the encoded query parameter. Raises FilterError on malformed input.
        """
        if encoded is None or not encoded.strip():
            return cls.empty()
        try:
            raw = json.loads(encoded)
        except json.JSONDecodeError as exc:
            raise FilterError(f"filters is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise FilterError("filters must be a JSON object")

        entries: Dict[str, List[Tuple[str, str]]] = {}
        for filter_type, values in raw.items():
            if isinstance(values, dict):
                # Legacy form: {"label": {"k=v": true}}
                values = [k for k, enabled in values.items() if enabled]
            elif isinstance(values, str):
                values = [values]
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise FilterError(f"filter {filter_type!r} must be a list of strings")
            if values:
                entries[str(filter_type)] = [_split_entry(v) for v in values]
        return cls(entries=entries)

    def is_empty(self) -> bool:
        return not self.entries

    def match(self, entity: Matchable) -> bool:
        for filter_type, values in self.entries.items():
            if not any(self._match_one(entity, filter_type, key, value) for key, value in values):
                return False
        return True

    @staticmethod
    def _match_one(entity: Matchable, filter_type: str, key: str, value: str) -> bool:
        try:
            return entity.match(filter_type, key, value)
        except FilterError as exc:
            _LOGGER.warning("unsupported filter %s=%s, accepting: %s", filter_type, key, exc)
            return True


def parse_filters(encoded: Optional[str], logger: Optional[logging.Logger] = None) -> Filter:
    """
    Permissive parsing for routes: a malformed parameter is logged and
    degrades to the empty (accept-all) filter.
    """
    try:
        return Filter.from_query(encoded)
    except FilterError as exc:
        (logger or _LOGGER).warning("unsupported filter %r: %s", encoded, exc)
        return Filter.empty()


__all__ = ["Filter", "parse_filters"]
