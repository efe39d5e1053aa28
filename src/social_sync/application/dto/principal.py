from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from an ID token."""

    uid: str
    email: str | None = None

    @property
    def principal_key(self) -> str:
        """Unique key for the WS connection registry."""
        return f"user:{self.uid}"


@dataclass(frozen=True, slots=True)
class AuthUser:
    uid: str
    email: str | None
    id_token: str = ""
    refresh_token: str = ""
