"""Simple key-value store used for the daily usage counter."""

from pathlib import Path
from typing import Any, Protocol

from sproutling.storage.json_file import read_json, update_json


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, values: dict[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


class JsonKeyValueStore:
    """Key-value pairs kept in a single JSON object on disk."""

    def __init__(self, path: Path):
        self.path = path

    def get(self, key: str, default: Any = None) -> Any:
        return read_json(self.path, {}).get(key, default)

    def set(self, key: str, value: Any) -> None:
        def _put(data: dict) -> dict:
            data[key] = value
            return data

        update_json(self.path, {}, _put)
