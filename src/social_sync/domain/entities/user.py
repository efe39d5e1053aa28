from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class User:
    uid: str
    email: str
    username: str
    profile_image: str | None
    friend_code: str | None = None
    chats_last_seen_at: datetime | None = None
