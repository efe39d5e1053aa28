from __future__ import annotations

from typing import Any

from social_sync.application.mappers import _fields as f
from social_sync.application.ports.store import SERVER_TIMESTAMP, Document
from social_sync.domain.entities.message import Message


def document_to_entity(doc: Document, conversation_id: str) -> Message:
    return Message(
        id=doc.id,
        conversation_id=conversation_id,
        text=f.text(doc.data, "text"),
        sender_id=f.text(doc.data, "senderId"),
        created_at=f.timestamp(doc.data, "createdAt"),
    )


def new_message_fields(sender_id: str, text: str) -> dict[str, Any]:
    return {"text": text, "senderId": sender_id, "createdAt": SERVER_TIMESTAMP}
