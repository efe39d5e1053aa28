"""Document paths (the collection layout is the schema)."""
from __future__ import annotations

USERS = "users"
FRIENDS = "friends"
USERNAMES = "usernames"
FRIEND_CODES = "friendcodes"
CHATS = "chats"
MESSAGES = "messages"
POSTS = "posts"
CHUNKS = "chunks"


def user(uid: str) -> str:
    return f"{USERS}/{uid}"


def friends(uid: str) -> str:
    return f"{USERS}/{uid}/{FRIENDS}"


def friend_edge(owner_uid: str, friend_uid: str) -> str:
    return f"{friends(owner_uid)}/{friend_uid}"


def username(name: str) -> str:
    return f"{USERNAMES}/{name.lower()}"


def friend_code(code: str) -> str:
    return f"{FRIEND_CODES}/{code}"


def chat(chat_id: str) -> str:
    return f"{CHATS}/{chat_id}"


def messages(chat_id: str) -> str:
    return f"{chat(chat_id)}/{MESSAGES}"


def message(chat_id: str, message_id: str) -> str:
    return f"{messages(chat_id)}/{message_id}"


def post(post_id: str) -> str:
    return f"{POSTS}/{post_id}"


def chunks(post_id: str) -> str:
    return f"{post(post_id)}/{CHUNKS}"


def chunk(post_id: str, index: int) -> str:
    return f"{chunks(post_id)}/{index}"
