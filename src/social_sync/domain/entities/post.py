from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Post:
    id: str
    uid: str
    username: str
    profile_image: str | None
    image: str
    caption: str
    address: str
    lat: float | None
    lng: float | None
    created_at: datetime | None
    chunk_count: int = 0

    @property
    def is_chunked(self) -> bool:
        return self.chunk_count > 0
