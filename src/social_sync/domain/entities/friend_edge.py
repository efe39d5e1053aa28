from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class FriendEdge:
    """Directed edge: ``owner_uid`` considers ``friend_uid`` a friend."""

    owner_uid: str
    friend_uid: str
    since: datetime | None
