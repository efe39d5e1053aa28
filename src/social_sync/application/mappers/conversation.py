from __future__ import annotations

from typing import Any

from social_sync.application.mappers import _fields as f
from social_sync.application.ports.store import SERVER_TIMESTAMP, Document
from social_sync.domain.entities.conversation import Conversation


def document_to_entity(doc: Document) -> Conversation:
    return Conversation(
        id=doc.id,
        participants=f.string_tuple(doc.data, "participants"),
        last_message_text=f.text(doc.data, "lastMessage"),
        last_sender_id=f.optional_text(doc.data, "lastSender"),
        updated_at=f.timestamp(doc.data, "updatedAt"),
    )


def participants_fields(uid_a: str, uid_b: str) -> dict[str, Any]:
    return {"participants": sorted((uid_a, uid_b))}


def last_message_fields(sender_id: str, text: str) -> dict[str, Any]:
    return {
        "lastMessage": text,
        "lastSender": sender_id,
        "updatedAt": SERVER_TIMESTAMP,
    }
