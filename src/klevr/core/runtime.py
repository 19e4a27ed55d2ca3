from __future__ import annotations

import threading

from klevr.core.storage import ObjectStorage, create_storage
from klevr.functions.client import EventClient
from klevr.functions.registry import register_functions

_LOCK = threading.Lock()
_STORAGE: ObjectStorage | None = None
_EVENT_CLIENT: EventClient | None = None


def get_storage() -> ObjectStorage:
    global _STORAGE
    with _LOCK:
        if _STORAGE is None:
            _STORAGE = create_storage()
        return _STORAGE


def get_event_client() -> EventClient:
    global _EVENT_CLIENT
    storage = get_storage()
    with _LOCK:
        if _EVENT_CLIENT is None:
            _EVENT_CLIENT = register_functions(EventClient(storage=storage))
        return _EVENT_CLIENT


def reset_runtime() -> None:
    global _STORAGE, _EVENT_CLIENT
    with _LOCK:
        _EVENT_CLIENT = None
        _STORAGE = None
