"""
Record store.

The MVP keeps records in memory. Any backend has to offer one primitive on
top of plain CRUD: ``update_if_version`` must only write when the stored
version still matches what the caller read.
"""
from __future__ import annotations

import copy
from threading import RLock
from typing import Any, Protocol

from ..errors import StaleVersion


class Store(Protocol):
    def save(self, kind: str, key: str, record: dict) -> None: ...

    def find(self, kind: str, key: str) -> dict | None: ...

    def delete(self, kind: str, key: str) -> bool: ...

    def update_if_version(self, kind: str, key: str, expected_version: int, record: dict) -> None: ...


class InMemoryStore:
    def __init__(self):
        self._lock = RLock()
        self._data: dict[tuple[str, str], dict[str, Any]] = {}

    def save(self, kind: str, key: str, record: dict) -> None:
        with self._lock:
            self._data[(kind, key)] = copy.deepcopy(record)

    def find(self, kind: str, key: str) -> dict | None:
        with self._lock:
            record = self._data.get((kind, key))
            return copy.deepcopy(record) if record is not None else None

    def delete(self, kind: str, key: str) -> bool:
        with self._lock:
            return self._data.pop((kind, key), None) is not None

    def update_if_version(self, kind: str, key: str, expected_version: int, record: dict) -> None:
        """
        Compare-and-swap on the record's ``version`` field.

        A missing record counts as version 0 so the first write of a new room
        goes through the same path as every later one.
        """
        with self._lock:
            current = self._data.get((kind, key))
            actual = current.get("version", 0) if current is not None else 0
            if actual != expected_version:
                raise StaleVersion(f"{kind}:{key}", expected_version, actual)
            self._data[(kind, key)] = copy.deepcopy(record)

    def all(self, kind: str) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(v) for (k, _), v in self._data.items() if k == kind]
