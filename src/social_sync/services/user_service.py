from __future__ import annotations

import logging
import secrets
import string
from dataclasses import replace
from typing import Any, Callable, Sequence

from social_sync.application.dto.profile import ProfileView
from social_sync.application.exceptions import (
    FriendCodeCollisionError,
    NotFoundError,
    UsernameTakenError,
    ValidationError,
)
from social_sync.application.mappers import user as user_mapper
from social_sync.application.ports.cache import PROFILE_IMAGE_KEY, USERNAME_KEY, LocalCache
from social_sync.application.ports.store import (
    DOCUMENT_ID,
    SERVER_TIMESTAMP,
    DocumentStore,
    FieldFilter,
    Selector,
    Transaction,
)
from social_sync.config import settings
from social_sync.domain.entities.user import User
from social_sync.domain.value_objects import paths

logger = logging.getLogger(__name__)

USERNAME_MAX_LENGTH = 20
USERNAME_MIN_LENGTH = 3
FRIEND_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
USERNAME_ALPHABET = frozenset(string.ascii_lowercase + string.digits + "_")


def sanitize_username(raw: str) -> str:
    """Lowercase letters, digits and ``_`` only, at most 20 characters."""
    allowed = [c for c in raw.strip().lower() if c in USERNAME_ALPHABET]
    return "".join(allowed)[:USERNAME_MAX_LENGTH]


def validate_username(raw: str) -> str:
    name = sanitize_username(raw)
    if len(name) < USERNAME_MIN_LENGTH:
        raise ValidationError("Username is too short")
    return name


async def add_user(
    store: DocumentStore,
    uid: str,
    email: str | None,
    username: str,
    profile_image: str | None = None,
) -> User:
    """Create (or merge) the user document and reserve its username."""
    name = validate_username(username)

    async def _txn(tx: Transaction) -> None:
        reservation = await tx.get(paths.username(name))
        if reservation is not None and reservation.get("uid") != uid:
            raise UsernameTakenError(name)
        tx.set(paths.username(name), {"uid": uid})
        tx.set(
            paths.user(uid),
            user_mapper.new_user_fields(uid, email, name, profile_image),
            merge=True,
        )

    await store.run_transaction(_txn)
    logger.info("User %s registered as %s", uid, name)
    return User(uid=uid, email=email or "", username=name, profile_image=profile_image)


async def update_profile(
    store: DocumentStore,
    uid: str,
    *,
    new_username: str | None = None,
    new_profile_image: str | None = None,
) -> User:
    if new_username is None and new_profile_image is None:
        raise ValidationError("Nothing to update")
    name = validate_username(new_username) if new_username is not None else None

    async def _txn(tx: Transaction) -> User:
        user_doc = await tx.get(paths.user(uid))
        if user_doc is None:
            raise NotFoundError("User not found")
        current = user_mapper.document_to_entity(user_doc)

        fields: dict[str, Any] = {"updatedAt": SERVER_TIMESTAMP}
        updated = current
        if name is not None and name != current.username:
            reservation = await tx.get(paths.username(name))
            if reservation is not None and reservation.get("uid") != uid:
                raise UsernameTakenError(name)
            tx.set(paths.username(name), {"uid": uid})
            if current.username:
                tx.delete(paths.username(current.username))
            fields["username"] = name
            updated = replace(updated, username=name)
        if new_profile_image:
            fields["pfpData"] = new_profile_image
            updated = replace(updated, profile_image=new_profile_image)

        tx.set(paths.user(uid), fields, merge=True)
        return updated

    return await store.run_transaction(_txn)


async def fetch_user(store: DocumentStore, uid: str) -> User | None:
    doc = await store.get(paths.user(uid))
    return user_mapper.document_to_entity(doc) if doc else None


async def user_exists(store: DocumentStore, uid: str) -> bool:
    return await store.get(paths.user(uid)) is not None


async def fetch_user_by_username(store: DocumentStore, username: str) -> User | None:
    name = sanitize_username(username)
    if not name:
        return None
    docs = await store.query(
        Selector(
            collection=paths.USERS,
            filters=(FieldFilter("username", "==", name),),
            limit=1,
        )
    )
    return user_mapper.document_to_entity(docs[0]) if docs else None


async def fetch_users_by_uids(
    store: DocumentStore,
    uids: Sequence[str],
    *,
    batch_size: int | None = None,
) -> list[User]:
    """Resolve ``uids`` with ``in`` queries of at most ``batch_size`` ids, keeping input order."""
    if not uids:
        return []
    size = batch_size or settings.USERS_IN_QUERY_LIMIT

    found: dict[str, User] = {}
    for start in range(0, len(uids), size):
        chunk = tuple(uids[start:start + size])
        docs = await store.query(
            Selector(
                collection=paths.USERS,
                filters=(FieldFilter(DOCUMENT_ID, "in", chunk),),
            )
        )
        for doc in docs:
            found[doc.id] = user_mapper.document_to_entity(doc)

    return [found[uid] for uid in uids if uid in found]


async def load_profile(
    store: DocumentStore,
    uid: str | None,
    cache: LocalCache,
) -> ProfileView:
    """Current user's profile; the local cache answers when the server can't."""
    try:
        user = await fetch_user(store, uid) if uid else None
    except Exception:
        logger.warning("Profile load failed for %s, using local cache", uid, exc_info=True)
        user = None

    if user is None:
        return ProfileView(
            username=cache.get(USERNAME_KEY),
            profile_image=cache.get(PROFILE_IMAGE_KEY),
            from_cache=True,
        )

    cache.set(USERNAME_KEY, user.username)
    cache.set(PROFILE_IMAGE_KEY, user.profile_image)
    return ProfileView(username=user.username, profile_image=user.profile_image)


def generate_friend_code(length: int | None = None) -> str:
    size = length or settings.FRIEND_CODE_LENGTH
    return "".join(secrets.choice(FRIEND_CODE_ALPHABET) for _ in range(size))


def normalize_friend_code(code: str) -> str:
    return "".join(c for c in code.strip().upper() if c.isalnum())


async def ensure_friend_code(
    store: DocumentStore,
    uid: str,
    *,
    attempts: int | None = None,
    generate: Callable[[], str] = generate_friend_code,
) -> str:
    """Return the user's friend code, allocating a fresh unique one if needed."""
    user = await fetch_user(store, uid)
    if user is None:
        raise NotFoundError("User not found")
    if user.friend_code:
        return user.friend_code

    max_attempts = attempts or settings.FRIEND_CODE_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        code = generate()

        async def _txn(tx: Transaction, code: str = code) -> tuple[str | None, bool]:
            # A concurrent call may have allocated one since the read above.
            current = await tx.get(paths.user(uid))
            existing = current.data.get("friendCode") if current is not None else None
            if existing:
                return existing, False
            if await tx.get(paths.friend_code(code)) is not None:
                return None, False
            tx.set(paths.friend_code(code), {"uid": uid, "createdAt": SERVER_TIMESTAMP})
            tx.set(paths.user(uid), {"friendCode": code}, merge=True)
            return code, True

        allocated, created = await store.run_transaction(_txn)
        if allocated:
            if created:
                logger.info("Allocated friend code for %s", uid)
            return allocated
        logger.debug("Friend code collision for %s (attempt %d)", uid, attempt)

    raise FriendCodeCollisionError(max_attempts)


async def resolve_friend_code(store: DocumentStore, code: str) -> str:
    normalized = normalize_friend_code(code)
    doc = await store.get(paths.friend_code(normalized)) if normalized else None
    uid = doc.get("uid") if doc else None
    if not uid:
        raise NotFoundError("Unknown friend code")
    return uid
