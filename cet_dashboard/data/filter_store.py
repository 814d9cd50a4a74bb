"""
Per-grid store of the filters currently applied, with optional persistence.

The store holds exactly the filters whose predicates are installed on the
grid; the filter engine is its only writer. When a persistence backend is
given, every mutation is written through under ``<grid_id>_filters``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional, Protocol, Tuple, Union

from cet_dashboard.data.schema import (
    ActiveFilter,
    filter_value_to_json,
    normalize_filter_value,
    parse_filter_type,
)

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SessionStateStore:
    """Key-value view over a Streamlit ``st.session_state`` (or any mutable mapping)."""

    def __init__(self, state: MutableMapping[str, Any], prefix: str = "cet_"):
        self._state = state
        self._prefix = prefix

    def get(self, key: str) -> Any:
        return self._state.get(self._prefix + key)

    def set(self, key: str, value: Any) -> None:
        self._state[self._prefix + key] = value

    def remove(self, key: str) -> None:
        full_key = self._prefix + key
        if full_key in self._state:
            del self._state[full_key]


class JsonFileStore:
    """Keeps every key in one JSON document on disk, so state survives restarts.

    The file is shared by every session of the server process; ``prefix``
    namespaces this store's keys within it (one prefix per browser session).
    """

    def __init__(self, path: Union[str, Path], prefix: str = ""):
        self.path = Path(path)
        self._prefix = prefix

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.warning("Filter state file %s unreadable; starting empty", self.path, exc_info=True)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        tmp_path.replace(self.path)

    def get(self, key: str) -> Any:
        return self._read().get(self._prefix + key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[self._prefix + key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        full_key = self._prefix + key
        if full_key in data:
            del data[full_key]
            self._write(data)


def serialize_filters(filters: Mapping[int, ActiveFilter]) -> Dict[str, Dict[str, Any]]:
    """JSON-safe form keyed by column index (as a string)."""
    return {
        str(column_index): {"type": active.type.value, "value": filter_value_to_json(active.value)}
        for column_index, active in sorted(filters.items())
    }


def deserialize_filters(data: Any) -> Dict[int, ActiveFilter]:
    """Parse serialized filters, dropping entries that no longer make sense."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Persisted filter state is not valid JSON; ignored")
            return {}
    if not isinstance(data, Mapping):
        return {}
    restored: Dict[int, ActiveFilter] = {}
    for raw_index, entry in data.items():
        try:
            column_index = int(raw_index)
        except (TypeError, ValueError):
            logger.warning("Persisted filter with bad column index %r dropped", raw_index)
            continue
        if not isinstance(entry, Mapping):
            logger.warning("Persisted filter for column %s malformed; dropped", column_index)
            continue
        filter_type = parse_filter_type(entry.get("type"))
        if filter_type is None:
            logger.warning("Persisted filter for column %s has unknown type %r; dropped", column_index, entry.get("type"))
            continue
        value = normalize_filter_value(filter_type, entry.get("value"))
        if value is None:
            continue
        restored[column_index] = ActiveFilter(column_index=column_index, type=filter_type, value=value)
    return restored


class ActiveFilterStore:
    def __init__(self, grid_id: str, persistence: Optional[KeyValueStore] = None):
        self.grid_id = grid_id
        self.persistence = persistence
        self._filters: Dict[int, ActiveFilter] = {}

    @property
    def storage_key(self) -> str:
        return f"{self.grid_id}_filters"

    @property
    def persistent(self) -> bool:
        return self.persistence is not None

    def set(self, column_index: int, active_filter: ActiveFilter) -> None:
        if active_filter.column_index != column_index:
            raise ValueError(
                f"Filter for column {active_filter.column_index} stored under column {column_index}"
            )
        self._filters[column_index] = active_filter
        self.save()

    def get(self, column_index: int) -> Optional[ActiveFilter]:
        return self._filters.get(column_index)

    def remove(self, column_index: int) -> bool:
        if self._filters.pop(column_index, None) is None:
            return False
        self.save()
        return True

    def replace(self, filters: Mapping[int, ActiveFilter]) -> None:
        self._filters = dict(filters)
        self.save()

    def clear(self) -> None:
        self._filters = {}
        if self.persistence is not None:
            self.persistence.remove(self.storage_key)

    def snapshot(self) -> Dict[int, ActiveFilter]:
        return dict(self._filters)

    def items(self) -> Iterator[Tuple[int, ActiveFilter]]:
        return iter(sorted(self._filters.items()))

    def __len__(self) -> int:
        return len(self._filters)

    def __contains__(self, column_index: object) -> bool:
        return column_index in self._filters

    def serialize(self) -> Dict[str, Dict[str, Any]]:
        return serialize_filters(self._filters)

    def save(self) -> None:
        if self.persistence is None:
            return
        if self._filters:
            self.persistence.set(self.storage_key, self.serialize())
        else:
            self.persistence.remove(self.storage_key)

    def restore(self) -> Dict[int, ActiveFilter]:
        """Read persisted filters without applying them.

        The filter engine validates the result against the grid's filter
        descriptors and installs the survivors, which writes them back here.
        """
        if self.persistence is None:
            return {}
        return deserialize_filters(self.persistence.get(self.storage_key))
