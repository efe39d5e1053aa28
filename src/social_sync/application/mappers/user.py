from __future__ import annotations

from typing import Any

from social_sync.application.mappers import _fields as f
from social_sync.application.ports.store import SERVER_TIMESTAMP, Document
from social_sync.domain.entities.user import User


def document_to_entity(doc: Document) -> User:
    return User(
        uid=f.text(doc.data, "uid") or doc.id,
        email=f.text(doc.data, "email"),
        username=f.text(doc.data, "username"),
        profile_image=f.optional_text(doc.data, "pfpData"),
        friend_code=f.optional_text(doc.data, "friendCode"),
        chats_last_seen_at=f.timestamp(doc.data, "chatsLastSeenAt"),
    )


def new_user_fields(
    uid: str, email: str | None, username: str, profile_image: str | None,
) -> dict[str, Any]:
    return {
        "uid": uid,
        "email": email or "",
        "username": username,
        "pfpData": profile_image or "",
        "createdAt": SERVER_TIMESTAMP,
    }
