from __future__ import annotations

from typing import Protocol

from social_sync.application.dto.principal import AuthUser, Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal: ...


class AuthBackend(Protocol):
    """Email/password identity provider used by the client-side session."""

    async def sign_in(self, email: str, password: str) -> AuthUser: ...
    async def sign_up(self, email: str, password: str) -> AuthUser: ...
