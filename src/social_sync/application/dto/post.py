from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CreatePostDTO:
    image: str
    caption: str | None = None
    address: str | None = None
    lat: float | None = None
    lng: float | None = None
