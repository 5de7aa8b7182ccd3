"""
Record store abstraction with flat-file, key-value and in-memory backends.

Every backend keeps one collection per record kind holding all users'
records, and every mutation is a read-modify-write of the whole collection.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, MutableMapping
from typing import Any, Callable, Optional, Protocol

from tracker.errors import RecordNotFoundError, StorageWriteError
from tracker.records import (
    RecordKind,
    build_record,
    new_local_id,
    new_record_id,
    normalize_record,
)

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Operations the API layer and the local client need from storage."""

    def list_by_user(self, kind: RecordKind, user_id: str) -> list[dict]:
        ...

    def get(self, kind: RecordKind, record_id: str) -> Optional[dict]:
        ...

    def create(self, kind: RecordKind, fields: dict) -> dict:
        ...

    def update(self, kind: RecordKind, record_id: str, fields: dict) -> dict:
        ...

    def delete(self, kind: RecordKind, record_id: str) -> None:
        ...


def _matches(record: Any, key: str, value: Any) -> bool:
    return isinstance(record, dict) and record.get(key) == value


class _CollectionStore(ABC):
    """
    Implements the store contract on top of `_read` / `_write` hooks that
    load and persist one whole collection.

    Mutations hold a per-kind lock for the duration of the read-modify-write,
    which serializes writers inside this process. Separate processes sharing
    the same files can still overwrite each other's changes.
    """

    def __init__(self, id_factory: Callable[[], str] = new_record_id):
        self.id_factory = id_factory
        self._locks = {kind: threading.Lock() for kind in RecordKind}

    @abstractmethod
    def _read(self, kind: RecordKind) -> list:
        ...

    @abstractmethod
    def _write(self, kind: RecordKind, records: list) -> None:
        ...

    def list_by_user(self, kind: RecordKind, user_id: str) -> list[dict]:
        return [r for r in self._read(kind) if _matches(r, "userId", user_id)]

    def get(self, kind: RecordKind, record_id: str) -> Optional[dict]:
        for record in self._read(kind):
            if _matches(record, "id", record_id):
                return record
        return None

    def create(self, kind: RecordKind, fields: dict) -> dict:
        with self._locks[kind]:
            records = self._read(kind)
            record = build_record(kind, fields, self.id_factory)
            records.append(record)
            self._write(kind, records)
        logger.info("Created %s %s", kind.value, record["id"])
        return record

    def update(self, kind: RecordKind, record_id: str, fields: dict) -> dict:
        with self._locks[kind]:
            records = self._read(kind)
            for index, record in enumerate(records):
                if _matches(record, "id", record_id):
                    updated = {**record, **fields}
                    records[index] = updated
                    self._write(kind, records)
                    return updated
        raise RecordNotFoundError(kind, record_id)

    def delete(self, kind: RecordKind, record_id: str) -> None:
        with self._locks[kind]:
            records = self._read(kind)
            remaining = [r for r in records if not _matches(r, "id", record_id)]
            self._write(kind, remaining)
        if len(remaining) != len(records):
            logger.info("Deleted %s %s", kind.value, record_id)


class InMemoryRecordStore(_CollectionStore):
    """Simple in-memory store for development and tests."""

    def __init__(self, id_factory: Callable[[], str] = new_record_id):
        super().__init__(id_factory)
        self.collections: dict[RecordKind, list] = {kind: [] for kind in RecordKind}

    def _read(self, kind: RecordKind) -> list:
        return [dict(r) if isinstance(r, dict) else r for r in self.collections[kind]]

    def _write(self, kind: RecordKind, records: list) -> None:
        self.collections[kind] = [dict(r) if isinstance(r, dict) else r for r in records]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        for kind in RecordKind:
            self.collections[kind] = []


class JsonFileRecordStore(_CollectionStore):
    """
    One pretty-printed JSON array per kind (`habits.json`, `tasks.json`)
    under `data_dir`.

    A missing file reads as an empty collection. So does a file that cannot
    be parsed or does not hold an array; that case is logged and never
    raised, and the next successful write replaces the broken content.
    """

    def __init__(self, data_dir: str, id_factory: Callable[[], str] = new_record_id):
        super().__init__(id_factory)
        self.data_dir = data_dir

    def path_for(self, kind: RecordKind) -> str:
        return os.path.join(self.data_dir, kind.filename)

    def _read(self, kind: RecordKind) -> list:
        path = self.path_for(kind)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.exception("Unreadable %s store at %s, using empty list", kind.value, path)
            return []
        if not isinstance(data, list):
            logger.error(
                "Expected a JSON array in %s, got %s; using empty list",
                path,
                type(data).__name__,
            )
            return []
        return [normalize_record(kind, r) if isinstance(r, dict) else r for r in data]

    def _write(self, kind: RecordKind, records: list) -> None:
        path = self.path_for(kind)
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.data_dir, prefix=f".{kind.value}s.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as exc:
            logger.exception("Failed to write %s", path)
            raise StorageWriteError(f"Could not save {kind.value}s") from exc
        logger.debug("Wrote %d %s records to %s", len(records), kind.value, path)


class JsonFileMapping(MutableMapping):
    """
    String-to-string mapping persisted as one JSON object, rewritten on every
    change. Plays the role of browser local storage for the local client.
    """

    def __init__(self, path: str):
        self.path = path
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.exception("Unreadable local storage file %s, starting empty", self.path)
            return {}
        if not isinstance(data, dict):
            logger.error("Local storage file %s does not hold an object", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        directory = os.path.dirname(self.path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
        except OSError as exc:
            logger.exception("Failed to write local storage file %s", self.path)
            raise StorageWriteError("Could not save local storage") from exc

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


class KeyValueRecordStore(_CollectionStore):
    """
    Stores each collection as a JSON string under the kind's fixed key
    (`simple_habits`, `simple_tasks`) of a string mapping.
    """

    def __init__(
        self,
        mapping: Optional[MutableMapping] = None,
        id_factory: Callable[[], str] = new_local_id,
    ):
        super().__init__(id_factory)
        self.mapping = mapping if mapping is not None else {}

    def _read(self, kind: RecordKind) -> list:
        raw = self.mapping.get(kind.storage_key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.exception("Unparseable value under %s, using empty list", kind.storage_key)
            return []
        if not isinstance(data, list):
            logger.error("Value under %s is not a JSON array", kind.storage_key)
            return []
        return [normalize_record(kind, r) if isinstance(r, dict) else r for r in data]

    def _write(self, kind: RecordKind, records: list) -> None:
        self.mapping[kind.storage_key] = json.dumps(records)
