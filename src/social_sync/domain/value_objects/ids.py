from __future__ import annotations

from typing import NewType

UserId = NewType("UserId", str)
ConversationId = NewType("ConversationId", str)

CONVERSATION_ID_SEPARATOR = "_"


def conversation_id(uid_a: str, uid_b: str) -> ConversationId:
    """Order-independent chat id for a pair of users: smaller uid first."""
    if not uid_a or not uid_b:
        raise ValueError("both participant ids are required")
    if uid_a == uid_b:
        raise ValueError("a conversation needs two distinct participants")
    first, second = sorted((uid_a, uid_b))
    return ConversationId(f"{first}{CONVERSATION_ID_SEPARATOR}{second}")
