from __future__ import annotations

from typing import Any

from social_sync.application.mappers import _fields as f
from social_sync.application.ports.store import SERVER_TIMESTAMP, Document
from social_sync.domain.entities.friend_edge import FriendEdge


def document_to_entity(doc: Document, owner_uid: str) -> FriendEdge:
    return FriendEdge(
        owner_uid=owner_uid,
        friend_uid=doc.id,
        since=f.timestamp(doc.data, "since"),
    )


def new_edge_fields() -> dict[str, Any]:
    return {"since": SERVER_TIMESTAMP}
