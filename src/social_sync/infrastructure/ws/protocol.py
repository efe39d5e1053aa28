"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from social_sync.domain.entities.message import Message
from social_sync.domain.entities.user import User


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # ping | chat.subscribe | chat.unsubscribe | friends.subscribe | chats.seen | unread.refresh
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # session.ready | unread.updated | messages.snapshot | friends.snapshot | pong | error
    data: dict[str, Any] = {}


def message_payload(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "text": message.text,
        "sender_id": message.sender_id,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


def friend_payload(user: User) -> dict[str, Any]:
    return {
        "uid": user.uid,
        "username": user.username,
        "profile_image": user.profile_image,
    }


def unread_payload(counts: dict[str, int]) -> dict[str, Any]:
    return {"unread": counts, "total": sum(counts.values())}
