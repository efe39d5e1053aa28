from __future__ import annotations

import logging

import jwt
from jwt import PyJWKClient

from social_sync.application.dto.principal import Principal

logger = logging.getLogger(__name__)


class JWKSVerifier:
    """Verify Firebase ID tokens against Google's published signing keys."""

    def __init__(self, jwks_url: str, *, audience: str, issuer: str) -> None:
        self._jwks_url = jwks_url
        self._audience = audience
        self._issuer = issuer
        self._jwk_client = PyJWKClient(jwks_url)

    async def verify(self, token: str) -> Principal:
        signing_key = self._jwk_client.get_signing_key_from_jwt(token)
        payload = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=self._audience,
            issuer=self._issuer,
            options={"require": ["sub", "exp", "iat"]},
        )
        uid = payload.get("user_id") or payload["sub"]
        return Principal(uid=str(uid), email=payload.get("email"))
