"""Email/password sign-in against the Firebase Auth REST API."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from social_sync.application.dto.principal import AuthUser
from social_sync.application.exceptions import AuthError
from social_sync.domain.value_objects.enums import AuthErrorCode

logger = logging.getLogger(__name__)

_ERROR_CODES: dict[str, AuthErrorCode] = {
    "EMAIL_NOT_FOUND": AuthErrorCode.INVALID_CREDENTIAL,
    "INVALID_PASSWORD": AuthErrorCode.INVALID_CREDENTIAL,
    "INVALID_LOGIN_CREDENTIALS": AuthErrorCode.INVALID_CREDENTIAL,
    "INVALID_EMAIL": AuthErrorCode.INVALID_CREDENTIAL,
    "TOO_MANY_ATTEMPTS_TRY_LATER": AuthErrorCode.TOO_MANY_REQUESTS,
    "USER_DISABLED": AuthErrorCode.USER_DISABLED,
    "EMAIL_EXISTS": AuthErrorCode.EMAIL_IN_USE,
    "WEAK_PASSWORD": AuthErrorCode.WEAK_PASSWORD,
}


def map_error_message(message: str) -> AuthErrorCode:
    # "WEAK_PASSWORD : Password should be at least 6 characters"
    head = message.split(":", 1)[0].strip().split(" ", 1)[0]
    return _ERROR_CODES.get(head, AuthErrorCode.UNKNOWN)


class FirebaseAuthClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://identitytoolkit.googleapis.com/v1",
        http: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def sign_in(self, email: str, password: str) -> AuthUser:
        return await self._call("accounts:signInWithPassword", email, password)

    async def sign_up(self, email: str, password: str) -> AuthUser:
        return await self._call("accounts:signUp", email, password)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, email: str, password: str) -> AuthUser:
        try:
            response = await self._http.post(
                f"{self._base_url}/{method}",
                params={"key": self._api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
            )
        except httpx.TransportError as exc:
            logger.warning("Auth request %s failed: %s", method, exc)
            raise AuthError(AuthErrorCode.NETWORK_UNREACHABLE) from exc

        body: dict[str, Any] = response.json() if response.content else {}
        if response.is_error:
            message = str(body.get("error", {}).get("message", ""))
            code = map_error_message(message)
            logger.info("Auth request %s rejected: %s", method, message or response.status_code)
            raise AuthError(code)

        return AuthUser(
            uid=body["localId"],
            email=body.get("email", email),
            id_token=body.get("idToken", ""),
            refresh_token=body.get("refreshToken", ""),
        )
