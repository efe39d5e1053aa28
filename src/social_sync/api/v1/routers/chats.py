from __future__ import annotations

from fastapi import APIRouter, Query

from social_sync.api.deps import CurrentPrincipal, StoreDep
from social_sync.api.v1.schemas.chat import (
    ChatResponse,
    MessageResponse,
    SeenResponse,
    SendMessageRequest,
)
from social_sync.services import chat_service
from social_sync.services.last_seen import LastSeenTracker

router = APIRouter(prefix="/api/v1/chats", tags=["chats"])


@router.post("/seen", response_model=SeenResponse)
async def mark_chats_seen(principal: CurrentPrincipal, store: StoreDep) -> SeenResponse:
    seen_at = await LastSeenTracker(store).mark_seen_now(principal.uid)
    return SeenResponse(seen_at=seen_at)


@router.put("/{peer_uid}", response_model=ChatResponse)
async def ensure_chat(peer_uid: str, principal: CurrentPrincipal, store: StoreDep) -> ChatResponse:
    chat_id = await chat_service.ensure_chat(store, principal.uid, peer_uid)
    return ChatResponse(chat_id=chat_id)


@router.get("/{peer_uid}/messages", response_model=list[MessageResponse])
async def list_messages(
    peer_uid: str,
    principal: CurrentPrincipal,
    store: StoreDep,
    limit: int | None = Query(None, ge=1, le=500),
) -> list[MessageResponse]:
    messages = await chat_service.list_messages(store, principal.uid, peer_uid, limit=limit)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post("/{peer_uid}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    peer_uid: str,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    store: StoreDep,
) -> MessageResponse:
    msg = await chat_service.send_message(store, principal.uid, peer_uid, body.text)
    return MessageResponse.model_validate(msg, from_attributes=True)
