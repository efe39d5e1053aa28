from __future__ import annotations

from typing import Callable, Protocol

AuthStateCallback = Callable[[str | None], None]
RemoveListener = Callable[[], None]


class SessionProvider(Protocol):
    def current_user_id(self) -> str | None: ...

    def on_auth_state_changed(self, callback: AuthStateCallback) -> RemoveListener:
        """Register ``callback``; it fires now with the current uid and on every change."""
        ...
