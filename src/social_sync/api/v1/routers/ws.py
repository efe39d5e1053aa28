from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from social_sync.api.deps import StoreDep, get_verifier
from social_sync.application.dto.principal import Principal
from social_sync.application.exceptions import AppError
from social_sync.config import settings
from social_sync.infrastructure.ws.live_session import LiveSession
from social_sync.infrastructure.ws.manager import ConnectionManager
from social_sync.infrastructure.ws.protocol import WsInbound

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/sync")
async def ws_sync(
    websocket: WebSocket,
    store: StoreDep,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    await websocket.accept()
    session = LiveSession(websocket, principal, store)
    manager.register(session)

    heartbeat_task = asyncio.create_task(
        _heartbeat(session), name=f"ws-heartbeat-{principal.principal_key}",
    )
    try:
        await session.open()
        await _read_loop(session)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", principal.principal_key)
    finally:
        heartbeat_task.cancel()
        manager.unregister(session)
        await session.close()


async def _heartbeat(session: LiveSession) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            session.emit("pong", {})
    except asyncio.CancelledError:
        pass


async def _read_loop(session: LiveSession) -> None:
    while True:
        raw = await session.ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            session.emit("error", {"code": "invalid_payload"})
            continue

        try:
            await _dispatch(session, msg)
        except AppError as exc:
            session.emit("error", {"code": "rejected", "type": msg.type, "detail": exc.detail})


async def _dispatch(session: LiveSession, msg: WsInbound) -> None:
    if msg.type == "ping":
        session.emit("pong", {})

    elif msg.type in ("chat.subscribe", "chat.unsubscribe"):
        peer_uid = msg.data.get("peer_uid")
        if not isinstance(peer_uid, str) or not peer_uid:
            session.emit("error", {"code": "invalid_data", "type": msg.type})
        elif msg.type == "chat.subscribe":
            await session.subscribe_chat(peer_uid)
        else:
            session.unsubscribe_chat(peer_uid)

    elif msg.type == "friends.subscribe":
        session.subscribe_friends()

    elif msg.type == "chats.seen":
        await session.mark_seen()

    elif msg.type == "unread.refresh":
        await session.refresh()

    else:
        session.emit("error", {"code": "unknown_type", "type": msg.type})
