from __future__ import annotations

import pytest

from social_sync.application.exceptions import ValidationError
from social_sync.domain.value_objects import paths
from social_sync.services import chat_service


@pytest.mark.asyncio
async def test_ensure_chat_is_shared_by_both_sides(store):
    first = await chat_service.ensure_chat(store, "bob", "alice")
    second = await chat_service.ensure_chat(store, "alice", "bob")

    assert first == second == "alice_bob"
    assert store.data(paths.chat("alice_bob")) == {"participants": ["alice", "bob"]}


@pytest.mark.asyncio
async def test_send_message_updates_chat_summary(store):
    msg = await chat_service.send_message(store, "alice", "bob", "  hello  ")

    assert msg.text == "hello"
    assert msg.sender_id == "alice"
    assert msg.conversation_id == "alice_bob"
    assert msg.created_at is not None

    chat = await chat_service.get_chat(store, "bob", "alice")
    assert chat is not None
    assert chat.participants == ("alice", "bob")
    assert chat.last_message_text == "hello"
    assert chat.last_sender_id == "alice"
    assert chat.peer_of("alice") == "bob"


@pytest.mark.asyncio
async def test_empty_message_is_rejected(store):
    with pytest.raises(ValidationError):
        await chat_service.send_message(store, "alice", "bob", "   ")
    assert store.docs == {}


@pytest.mark.asyncio
async def test_chat_with_yourself_is_rejected(store):
    with pytest.raises(ValidationError):
        await chat_service.ensure_chat(store, "alice", "alice")


@pytest.mark.asyncio
async def test_list_messages_in_creation_order(store):
    for text in ("one", "two", "three"):
        await chat_service.send_message(store, "alice", "bob", text)

    messages = await chat_service.list_messages(store, "bob", "alice")
    assert [m.text for m in messages] == ["one", "two", "three"]

    limited = await chat_service.list_messages(store, "bob", "alice", limit=2)
    assert [m.text for m in limited] == ["one", "two"]


@pytest.mark.asyncio
async def test_watch_messages_replaces_state_per_snapshot(store, coordinator):
    snapshots = []
    chat_service.watch_messages(coordinator, "alice", "bob", lambda msgs: snapshots.append([m.text for m in msgs]))

    await chat_service.send_message(store, "alice", "bob", "hi")
    await chat_service.send_message(store, "bob", "alice", "hey")

    assert snapshots == [[], ["hi"], ["hi", "hey"]]

    # Same key: the second watch replaces the first.
    chat_service.watch_messages(coordinator, "bob", "alice", lambda msgs: None)
    assert store.open_subscriptions == 1
