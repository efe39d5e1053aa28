from __future__ import annotations

import json
from datetime import timedelta

import pytest

from social_sync.application.dto.principal import Principal
from social_sync.infrastructure.ws.live_session import LiveSession
from social_sync.infrastructure.ws.manager import ConnectionManager
from social_sync.services import chat_service
from tests.conftest import T0, QueuedDeliveryStore, drain, seed_chat, seed_message, seed_user


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_text(self, raw: str) -> None:
        self.sent.append(json.loads(raw))

    def types(self) -> list[str]:
        return [event["type"] for event in self.sent]


@pytest.fixture
def seeded(store):
    seed_user(store, "alice", chatsLastSeenAt=T0)
    seed_user(store, "bob")
    chat_id = seed_chat(store, "alice", "bob")
    seed_message(store, chat_id, "bob", "hey", T0 + timedelta(seconds=1))
    return chat_id


@pytest.mark.asyncio
async def test_live_session_streams_unread_and_messages(store, seeded):
    ws = FakeWebSocket()
    session = LiveSession(ws, Principal(uid="alice"), store)

    await session.open()
    await session.subscribe_chat("bob")
    await chat_service.send_message(store, "bob", "alice", "are you there?")
    await session.close()

    assert ws.types() == ["session.ready", "messages.snapshot", "unread.updated", "messages.snapshot"]
    assert ws.sent[0]["data"] == {"uid": "alice", "unread": {seeded: 1}, "total": 1}
    updated = next(e for e in ws.sent if e["type"] == "unread.updated")
    assert updated["data"] == {"unread": {seeded: 2}, "total": 2}


@pytest.mark.asyncio
async def test_close_releases_every_subscription(store, seeded):
    ws = FakeWebSocket()
    session = LiveSession(ws, Principal(uid="alice"), store)
    await session.open()
    await session.subscribe_chat("bob")
    session.subscribe_friends()
    assert store.open_subscriptions == 4

    session.unsubscribe_chat("bob")
    assert store.open_subscriptions == 3

    await session.close()
    await session.close()
    assert store.open_subscriptions == 0

    session.emit("pong", {})
    assert "pong" not in ws.types()


@pytest.mark.asyncio
async def test_manager_closes_all_sessions(store, seeded):
    manager = ConnectionManager()
    sessions = [LiveSession(FakeWebSocket(), Principal(uid="alice"), store) for _ in range(2)]
    for session in sessions:
        await session.open()
        manager.register(session)

    assert len(manager) == 2
    assert manager.sessions_for("user:alice") == set(sessions)

    await manager.close_all()
    assert len(manager) == 0
    assert store.open_subscriptions == 0


@pytest.mark.asyncio
async def test_ready_waits_for_deferred_snapshots_and_refresh_is_quiet(clock):
    store = QueuedDeliveryStore(clock)
    seed_user(store, "alice", chatsLastSeenAt=T0)
    for peer in ("bob", "carol"):
        chat_id = seed_chat(store, "alice", peer)
        seed_message(store, chat_id, peer, "hey", T0 + timedelta(seconds=1))
    ws = FakeWebSocket()
    session = LiveSession(ws, Principal(uid="alice"), store)

    await session.open()
    await session.refresh()
    await drain()
    await session.close()

    assert ws.types() == ["session.ready"]
    assert ws.sent[0]["data"] == {
        "uid": "alice",
        "unread": {"alice_bob": 1, "alice_carol": 1},
        "total": 2,
    }


@pytest.mark.asyncio
async def test_ready_is_sent_when_counts_never_settle(store, seeded):
    gate = store.hold_reads()
    ws = FakeWebSocket()
    session = LiveSession(ws, Principal(uid="alice"), store, ready_timeout=0.05)

    await session.open()
    gate.set()
    await session.close()

    assert ws.types()[0] == "session.ready"
    assert ws.sent[0]["data"]["total"] == 0
