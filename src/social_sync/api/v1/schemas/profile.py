from __future__ import annotations

from pydantic import BaseModel, Field


class CreateProfileRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    profile_image: str | None = None


class UpdateProfileRequest(BaseModel):
    username: str | None = Field(default=None, max_length=64)
    profile_image: str | None = None


class ProfileResponse(BaseModel):
    uid: str
    email: str
    username: str
    profile_image: str | None
    friend_code: str | None = None

    model_config = {"from_attributes": True}


class FriendCodeResponse(BaseModel):
    friend_code: str
