from __future__ import annotations

from pydantic import BaseModel, model_validator


class AddFriendRequest(BaseModel):
    """Exactly one way of naming the new friend."""

    uid: str | None = None
    scanned: str | None = None
    friend_code: str | None = None
    username: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "AddFriendRequest":
        given = [v for v in (self.uid, self.scanned, self.friend_code, self.username) if v]
        if len(given) != 1:
            raise ValueError("Provide exactly one of uid, scanned, friend_code, username")
        return self


class FriendResponse(BaseModel):
    uid: str
    username: str
    profile_image: str | None

    model_config = {"from_attributes": True}


class AddFriendResponse(BaseModel):
    uid: str
