"""Friendship as two directed edges, each written by independent requests.

``a -> b`` lives under ``users/a/friends/b``. Security rules let a user write
their own outbound edge, so the pair is not updated atomically; the
relation can end up asymmetric (no reconciliation pass exists).
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable
from urllib.parse import parse_qsl, urlsplit

from social_sync.application.exceptions import NotFoundError, ValidationError
from social_sync.application.mappers import friend_edge as edge_mapper
from social_sync.application.ports.session import RemoveListener
from social_sync.application.ports.store import Document, DocumentStore, Selector
from social_sync.domain.entities.user import User
from social_sync.domain.value_objects import paths
from social_sync.services import user_service
from social_sync.services.subscriptions import SubscriptionCoordinator, SubscriptionHandle

logger = logging.getLogger(__name__)


def _assert_distinct(my_uid: str, other_uid: str) -> None:
    if not my_uid or not other_uid:
        raise ValidationError("Both user ids are required")
    if my_uid == other_uid:
        raise ValidationError("You cannot add yourself as a friend")


async def add_friend(store: DocumentStore, my_uid: str, other_uid: str) -> None:
    _assert_distinct(my_uid, other_uid)

    await store.set(
        paths.friend_edge(my_uid, other_uid), edge_mapper.new_edge_fields(), merge=True,
    )
    # Leave an existing reverse edge (and its timestamp) untouched.
    reverse = await store.get(paths.friend_edge(other_uid, my_uid))
    if reverse is None:
        await store.set(paths.friend_edge(other_uid, my_uid), edge_mapper.new_edge_fields())
    logger.info("Friendship %s <-> %s", my_uid, other_uid)


async def remove_friend(store: DocumentStore, my_uid: str, other_uid: str) -> None:
    _assert_distinct(my_uid, other_uid)

    await store.delete(paths.friend_edge(my_uid, other_uid))
    try:
        await store.delete(paths.friend_edge(other_uid, my_uid))
    except Exception:
        logger.warning(
            "Could not delete friend edge %s -> %s; relation is now asymmetric",
            other_uid, my_uid, exc_info=True,
        )
    logger.info("Friendship %s -> %s removed", my_uid, other_uid)


def extract_uid(scanned: str) -> str | None:
    """Pull a uid out of a scanned code.

    Accepts a bare uid, ``uid:XYZ``, a URL with a ``uid`` query parameter
    or a small JSON object ``{"uid": "..."}``.
    """
    value = scanned.strip()
    if not value:
        return None

    lowered = value.lower()
    if lowered.startswith("uid:"):
        return value[len("uid:"):].strip() or None

    if not any(token in value for token in (" ", "\n", "://", "{")):
        return value

    if "uid:" in lowered:
        start = lowered.index("uid:") + len("uid:")
        return value[start:].strip() or None

    if "://" in value:
        for name, param in parse_qsl(urlsplit(value).query):
            if name.lower() == "uid" and param:
                return param

    try:
        payload = json.loads(value)
    except ValueError:
        return None
    uid = payload.get("uid") if isinstance(payload, dict) else None
    return uid if isinstance(uid, str) and uid else None


async def add_friend_from_scanned_value(
    store: DocumentStore,
    my_uid: str,
    value: str,
    *,
    is_uid: bool = True,
) -> str:
    """Befriend the user a scanned value points at; returns their uid."""
    if is_uid:
        other_uid = extract_uid(value)
        if other_uid is None:
            raise ValidationError("Invalid QR code")
    else:
        user = await user_service.fetch_user_by_username(store, value)
        if user is None:
            raise NotFoundError("User not found")
        other_uid = user.uid

    _assert_distinct(my_uid, other_uid)
    if not await user_service.user_exists(store, other_uid):
        raise NotFoundError("User not found")

    await add_friend(store, my_uid, other_uid)
    return other_uid


async def add_friend_by_code(store: DocumentStore, my_uid: str, code: str) -> str:
    other_uid = await user_service.resolve_friend_code(store, code)
    _assert_distinct(my_uid, other_uid)
    await add_friend(store, my_uid, other_uid)
    return other_uid


def friends_selector(uid: str) -> Selector:
    return Selector(collection=paths.friends(uid), order_by="since")


def _friend_ids(documents: list[Document]) -> list[str]:
    return [doc.id for doc in documents]


async def list_friend_ids(store: DocumentStore, uid: str) -> list[str]:
    return _friend_ids(await store.query(friends_selector(uid)))


def watch_friends(
    coordinator: SubscriptionCoordinator,
    uid: str,
    on_change: Callable[[list[str]], None],
) -> SubscriptionHandle:
    return coordinator.subscribe(
        friends_selector(uid),
        lambda documents: on_change(_friend_ids(documents)),
        key=("friends", uid),
    )


FriendsListener = Callable[[list[User]], None]


class FriendListProjection:
    """Live friend list resolved to user profiles.

    Each id snapshot triggers a profile lookup; a newer snapshot cancels a
    lookup still in flight so only the latest list is published.
    """

    def __init__(
        self,
        store: DocumentStore,
        coordinator: SubscriptionCoordinator,
        uid: str,
    ) -> None:
        self._store = store
        self._coordinator = coordinator
        self._uid = uid
        self._handle: SubscriptionHandle | None = None
        self._lookup: asyncio.Task[None] | None = None
        self._listeners: list[FriendsListener] = []
        self.friends: list[User] = []

    def add_listener(self, listener: FriendsListener) -> RemoveListener:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(self) -> None:
        self.stop()
        self._handle = watch_friends(self._coordinator, self._uid, self._on_ids)

    def stop(self) -> None:
        self._coordinator.unsubscribe(self._handle)
        self._handle = None
        if self._lookup is not None and not self._lookup.done():
            self._lookup.cancel()
        self._lookup = None

    async def wait_until_settled(self) -> None:
        if self._lookup is not None:
            await asyncio.wait({self._lookup})

    def _on_ids(self, ids: list[str]) -> None:
        if self._lookup is not None and not self._lookup.done():
            self._lookup.cancel()
        self._lookup = asyncio.get_running_loop().create_task(self._resolve(ids))

    async def _resolve(self, ids: list[str]) -> None:
        try:
            users = await user_service.fetch_users_by_uids(self._store, ids)
        except Exception:
            logger.exception("Friend list lookup failed for %s", self._uid)
            return
        self.friends = users
        for listener in list(self._listeners):
            try:
                listener(list(users))
            except Exception:
                logger.exception("Friend list listener failed")
