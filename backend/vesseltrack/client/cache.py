"""Keyed query cache with explicit invalidation."""
from __future__ import annotations

from typing import Any, Callable

VESSELS = "vessels"
SUCCESSFUL_TRIPS = "successful-trips"
USERS = "users"


class QueryCache:
    """Holds the last successful result per key until it is invalidated.

    Loader failures propagate and leave the key empty.
    """

    def __init__(self):
        self._entries: dict[str, Any] = {}

    def fetch(self, key: str, loader: Callable[[], Any]) -> Any:
        if key not in self._entries:
            self._entries[key] = loader()
        return self._entries[key]

    def invalidate(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries
