from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    conversation_id: str
    text: str
    sender_id: str
    created_at: datetime | None
