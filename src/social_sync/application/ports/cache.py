from __future__ import annotations

from typing import Any, Protocol

LAST_SEEN_KEY = "chats_last_seen_at"
USERNAME_KEY = "username"
PROFILE_IMAGE_KEY = "pfpBase64"


class LocalCache(Protocol):
    """Offline/startup fallback key-value store. Never authoritative."""

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...


class MemoryCache:
    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
