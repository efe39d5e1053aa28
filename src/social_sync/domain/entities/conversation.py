from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Conversation:
    id: str
    participants: tuple[str, ...]
    last_message_text: str
    last_sender_id: str | None
    updated_at: datetime | None

    def peer_of(self, uid: str) -> str | None:
        for participant in self.participants:
            if participant != uid:
                return participant
        return None
