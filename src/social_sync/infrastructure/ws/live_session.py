"""Server-side state of one ``/ws/sync`` connection."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from social_sync.application.dto.principal import Principal
from social_sync.application.ports.store import DocumentStore
from social_sync.domain.entities.message import Message
from social_sync.domain.entities.user import User
from social_sync.infrastructure.auth.session import StaticSession
from social_sync.infrastructure.ws.protocol import (
    WsOutbound,
    friend_payload,
    message_payload,
    unread_payload,
)
from social_sync.services import chat_service
from social_sync.services.friend_service import FriendListProjection
from social_sync.services.last_seen import LastSeenTracker
from social_sync.services.subscriptions import SubscriptionCoordinator, SubscriptionHandle
from social_sync.services.unread_aggregator import UnreadAggregator

logger = logging.getLogger(__name__)

READY_TIMEOUT_SECONDS = 10.0


class LiveSession:
    """Owns every live subscription opened on behalf of one connection.

    Snapshot callbacks only enqueue events; a single writer task sends them
    so frames never interleave.
    """

    def __init__(
        self,
        ws: WebSocket,
        principal: Principal,
        store: DocumentStore,
        *,
        ready_timeout: float = READY_TIMEOUT_SECONDS,
    ) -> None:
        self.ws = ws
        self.ready_timeout = ready_timeout
        self.principal = principal
        self._store = store
        self._coordinator = SubscriptionCoordinator(store)
        self._session = StaticSession(principal.uid)
        self._last_seen = LastSeenTracker(store)
        self.aggregator = UnreadAggregator(store, self._last_seen, coordinator=self._coordinator)
        self._chats: dict[str, SubscriptionHandle] = {}
        self._friends: FriendListProjection | None = None
        self._remove_unread = None
        self._detach = None
        self._outbox: asyncio.Queue[WsOutbound | None] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def uid(self) -> str:
        return self.principal.uid

    @property
    def open_subscriptions(self) -> int:
        return len(self._coordinator)

    async def open(self) -> None:
        self._writer = asyncio.create_task(self._write_loop(), name=f"ws-writer-{self.uid}")
        self._detach = self.aggregator.attach(self._session)
        try:
            await asyncio.wait_for(self.aggregator.wait_until_ready(), self.ready_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Unread counts for %s not settled after %.1fs", self.uid, self.ready_timeout,
            )
        self.emit("session.ready", {"uid": self.uid, **unread_payload(self.aggregator.counts)})
        self._remove_unread = self.aggregator.add_listener(
            lambda counts: self.emit("unread.updated", unread_payload(counts)),
        )

    def emit(self, event_type: str, data: dict[str, Any]) -> None:
        if not self._closed:
            self._outbox.put_nowait(WsOutbound(type=event_type, data=data))

    async def send_now(self, event_type: str, data: dict[str, Any]) -> None:
        await self.ws.send_text(WsOutbound(type=event_type, data=data).model_dump_json())

    async def subscribe_chat(self, peer_uid: str) -> str:
        chat_id = await chat_service.ensure_chat(self._store, self.uid, peer_uid)

        def on_messages(messages: list[Message]) -> None:
            self.emit(
                "messages.snapshot",
                {
                    "peer_uid": peer_uid,
                    "chat_id": chat_id,
                    "messages": [message_payload(m) for m in messages],
                },
            )

        self._chats[chat_id] = chat_service.watch_messages(
            self._coordinator, self.uid, peer_uid, on_messages,
        )
        return chat_id

    def unsubscribe_chat(self, peer_uid: str) -> None:
        chat_id = chat_service.chat_id_for(self.uid, peer_uid)
        self._coordinator.unsubscribe(self._chats.pop(chat_id, None))

    def subscribe_friends(self) -> None:
        if self._friends is None:
            self._friends = FriendListProjection(self._store, self._coordinator, self.uid)
            self._friends.add_listener(self._on_friends)
        self._friends.start()

    def _on_friends(self, friends: list[User]) -> None:
        self.emit("friends.snapshot", {"friends": [friend_payload(u) for u in friends]})

    async def mark_seen(self) -> None:
        seen = await self._last_seen.mark_seen_now(self.uid)
        self.emit("chats.seen", {"seen_at": seen.isoformat()})

    async def refresh(self) -> None:
        await self.aggregator.restart()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._remove_unread is not None:
            self._remove_unread()
        if self._friends is not None:
            self._friends.stop()
        if self._detach is not None:
            self._detach()
        self._session.end()
        self._chats.clear()
        self._coordinator.close()
        self._outbox.put_nowait(None)
        if self._writer is not None:
            await asyncio.wait({self._writer})
        logger.debug("Live session closed for %s", self.uid)

    async def _write_loop(self) -> None:
        while True:
            event = await self._outbox.get()
            if event is None:
                return
            try:
                await self.ws.send_text(event.model_dump_json())
            except Exception:
                logger.debug("WS send failed for %s", self.uid, exc_info=True)
                return
