from __future__ import annotations

import pytest

from social_sync.domain.value_objects import paths
from social_sync.domain.value_objects.ids import conversation_id


def test_conversation_id_is_order_independent():
    assert conversation_id("alice", "bob") == conversation_id("bob", "alice") == "alice_bob"


def test_conversation_id_puts_smaller_uid_first():
    assert conversation_id("Zed", "adam") == "Zed_adam"


@pytest.mark.parametrize("a,b", [("", "bob"), ("alice", ""), ("alice", "alice")])
def test_conversation_id_rejects_invalid_pairs(a, b):
    with pytest.raises(ValueError):
        conversation_id(a, b)


def test_paths_follow_collection_layout():
    assert paths.friend_edge("a", "b") == "users/a/friends/b"
    assert paths.message("a_b", "m1") == "chats/a_b/messages/m1"
    assert paths.chunk("p1", 2) == "posts/p1/chunks/2"
    assert paths.username("Alice") == "usernames/alice"
