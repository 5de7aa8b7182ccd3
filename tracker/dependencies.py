"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from tracker.config import get_settings
from tracker.store import InMemoryRecordStore, JsonFileRecordStore, RecordStore

_record_store: RecordStore | None = None


def get_record_store() -> RecordStore:
    """
    Return a singleton store so every request shares the same per-kind locks.
    """
    global _record_store
    if _record_store:
        return _record_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _record_store = InMemoryRecordStore()
    else:
        _record_store = JsonFileRecordStore(settings.data_dir)
    return _record_store
