"""Signed-in state for client processes (CLI watchers, scripts, tests)."""
from __future__ import annotations

import logging

from social_sync.application.dto.principal import AuthUser
from social_sync.application.exceptions import UsernameTakenError
from social_sync.application.ports.auth import AuthBackend
from social_sync.application.ports.cache import PROFILE_IMAGE_KEY, USERNAME_KEY, LocalCache
from social_sync.application.ports.session import AuthStateCallback, RemoveListener
from social_sync.application.ports.store import DocumentStore
from social_sync.domain.value_objects import paths
from social_sync.services import user_service

logger = logging.getLogger(__name__)


class _Listeners:
    def __init__(self) -> None:
        self._callbacks: list[AuthStateCallback] = []

    def add(self, callback: AuthStateCallback, uid: str | None) -> RemoveListener:
        self._callbacks.append(callback)
        callback(uid)

        def _remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _remove

    def notify(self, uid: str | None) -> None:
        for callback in list(self._callbacks):
            try:
                callback(uid)
            except Exception:
                logger.exception("Auth state listener failed")


class SessionManager:
    """Email/password session backed by an :class:`AuthBackend`."""

    def __init__(
        self,
        backend: AuthBackend,
        store: DocumentStore | None = None,
        cache: LocalCache | None = None,
    ) -> None:
        self._backend = backend
        self._store = store
        self._cache = cache
        self._user: AuthUser | None = None
        self._listeners = _Listeners()

    @property
    def current_user(self) -> AuthUser | None:
        return self._user

    def current_user_id(self) -> str | None:
        return self._user.uid if self._user else None

    def on_auth_state_changed(self, callback: AuthStateCallback) -> RemoveListener:
        return self._listeners.add(callback, self.current_user_id())

    async def sign_in(self, email: str, password: str) -> AuthUser:
        user = await self._backend.sign_in(email.strip(), password)
        self._set(user)
        return user

    async def create_account(
        self,
        email: str,
        password: str,
        username: str,
        profile_image: str | None = None,
    ) -> AuthUser:
        """Sign up and write the user profile; the username is checked before the account exists."""
        name = user_service.validate_username(username)
        if self._store is not None and await self._store.get(paths.username(name)) is not None:
            raise UsernameTakenError(name)
        user = await self._backend.sign_up(email.strip(), password)
        if self._store is not None:
            await user_service.add_user(self._store, user.uid, user.email, name, profile_image)
        if self._cache is not None:
            self._cache.set(USERNAME_KEY, name)
            if profile_image:
                self._cache.set(PROFILE_IMAGE_KEY, profile_image)
        self._set(user)
        return user

    def sign_out(self) -> None:
        self._set(None)

    def _set(self, user: AuthUser | None) -> None:
        previous = self.current_user_id()
        self._user = user
        uid = self.current_user_id()
        if uid != previous:
            logger.info("Auth state changed: %s -> %s", previous, uid)
            self._listeners.notify(uid)


class StaticSession:
    """Session fixed to an already-verified uid (one per WebSocket connection)."""

    def __init__(self, uid: str) -> None:
        self._uid: str | None = uid
        self._listeners = _Listeners()

    def current_user_id(self) -> str | None:
        return self._uid

    def on_auth_state_changed(self, callback: AuthStateCallback) -> RemoveListener:
        return self._listeners.add(callback, self._uid)

    def end(self) -> None:
        if self._uid is not None:
            self._uid = None
            self._listeners.notify(None)
