"""
Record kinds, id generation and record normalization.

Records are plain JSON objects (dicts). Only `id` and `userId` are
interpreted by the store; every other field passes through untouched.
"""

from __future__ import annotations

import random
import string
import threading
import time
from enum import Enum
from typing import Any, Callable

_BASE36 = string.digits + string.ascii_lowercase

_id_lock = threading.Lock()
_last_timestamp_id = 0


class RecordKind(str, Enum):
    HABIT = "habit"
    TASK = "task"

    @property
    def filename(self) -> str:
        return f"{self.value}s.json"

    @property
    def storage_key(self) -> str:
        """Fixed key used by the local key-value store."""
        return f"simple_{self.value}s"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    def defaults(self) -> dict[str, Any]:
        if self is RecordKind.HABIT:
            return {"completedDates": []}
        return {"completed": False}


# Older local-only records used these names.
LEGACY_FIELDS = {
    RecordKind.HABIT: ("doneDates", "completedDates"),
    RecordKind.TASK: ("done", "completed"),
}


def new_record_id() -> str:
    """
    Millisecond timestamp id. Ids issued in the same millisecond are bumped
    so consecutive creates in one process never collide.
    """
    global _last_timestamp_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_timestamp_id:
            candidate = _last_timestamp_id + 1
        _last_timestamp_id = candidate
    return str(candidate)


def _random_base36(length: int) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def new_local_id() -> str:
    return "id" + _random_base36(6)


def new_user_id() -> str:
    return f"user_{int(time.time() * 1000)}_{_random_base36(9)}"


def build_record(
    kind: RecordKind, fields: dict[str, Any], id_factory: Callable[[], str]
) -> dict[str, Any]:
    """Caller fields first, then the generated id and the kind defaults."""
    record = dict(fields)
    record["id"] = id_factory()
    record.update(kind.defaults())
    return record


def normalize_record(kind: RecordKind, record: dict[str, Any]) -> dict[str, Any]:
    legacy, canonical = LEGACY_FIELDS[kind]
    if legacy in record and canonical not in record:
        record = dict(record)
        record[canonical] = record.pop(legacy)
    return record


def sort_tasks_by_time(tasks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # HH:MM compares chronologically as a plain string.
    return sorted(tasks, key=lambda task: str(task.get("time") or ""))
