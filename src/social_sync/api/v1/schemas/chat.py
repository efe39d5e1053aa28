from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SendMessageRequest(BaseModel):
    text: str = Field(min_length=1, max_length=4000)


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    text: str
    sender_id: str
    created_at: datetime | None

    model_config = {"from_attributes": True}


class ChatResponse(BaseModel):
    chat_id: str


class SeenResponse(BaseModel):
    seen_at: datetime
