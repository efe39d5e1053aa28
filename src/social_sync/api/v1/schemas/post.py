from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreatePostRequest(BaseModel):
    image: str = Field(min_length=1)
    caption: str | None = Field(default=None, max_length=2000)
    address: str | None = None
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)


class PostResponse(BaseModel):
    id: str
    uid: str
    username: str
    profile_image: str | None
    caption: str
    address: str
    lat: float | None
    lng: float | None
    created_at: datetime | None
    chunk_count: int

    model_config = {"from_attributes": True}


class PostImageResponse(BaseModel):
    id: str
    image: str
