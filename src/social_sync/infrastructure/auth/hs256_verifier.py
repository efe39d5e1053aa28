from __future__ import annotations

import jwt

from social_sync.application.dto.principal import Principal


class HS256Verifier:
    """Verify ID tokens signed with a shared HS256 secret (tests, local dev)."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            options={"require": ["sub"]},
        )
        return Principal(uid=str(payload["sub"]), email=payload.get("email"))
