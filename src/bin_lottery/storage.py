from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Protocol

log = logging.getLogger(__name__)

_DELETED = object()


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def has(self, key: str) -> bool: ...


class MemoryStore:
    """Plain dict-backed store. Values are deep-copied in and out."""

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self.data: Dict[str, Any] = dict(data or {})

    def get(self, key: str) -> Optional[Any]:
        value = self.data.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def has(self, key: str) -> bool:
        return key in self.data

    def commit(self) -> None:
        pass


class JsonFileStore(MemoryStore):
    """
    MemoryStore persisted to a single JSON file.
    commit() rewrites the file through a temp file + os.replace, so a crash
    never leaves a half-written state file behind.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        data: Dict[str, Any] = {}
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        super().__init__(data)

    def commit(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        log.debug("State written to %s (%d keys)", self.path, len(self.data))


class Overlay:
    """Write buffer over a backing store; reads see pending writes first."""

    def __init__(self, backing: KeyValueStore) -> None:
        self.backing = backing
        self.pending: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        if key in self.pending:
            value = self.pending[key]
            return None if value is _DELETED else copy.deepcopy(value)
        return self.backing.get(key)

    def set(self, key: str, value: Any) -> None:
        self.pending[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self.pending[key] = _DELETED

    def has(self, key: str) -> bool:
        if key in self.pending:
            return self.pending[key] is not _DELETED
        return self.backing.has(key)

    def flush(self) -> None:
        for key, value in self.pending.items():
            if value is _DELETED:
                self.backing.delete(key)
            else:
                self.backing.set(key, value)
        self.pending.clear()


@contextmanager
def transaction(store: KeyValueStore) -> Iterator[Overlay]:
    """
    All-or-nothing view of `store` for one operation.
    Writes land in the backing store only if the block exits normally.
    """
    overlay = Overlay(store)
    yield overlay
    overlay.flush()
    commit = getattr(store, "commit", None)
    if commit is not None:
        commit()
