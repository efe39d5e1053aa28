from __future__ import annotations

import logging
from typing import Callable

from social_sync.application.exceptions import NotFoundError, ValidationError
from social_sync.application.mappers import conversation as conversation_mapper
from social_sync.application.mappers import message as message_mapper
from social_sync.application.ports.store import DocumentStore, Selector
from social_sync.domain.entities.conversation import Conversation
from social_sync.domain.entities.message import Message
from social_sync.domain.value_objects import paths
from social_sync.domain.value_objects.ids import conversation_id
from social_sync.services.subscriptions import SubscriptionCoordinator, SubscriptionHandle

logger = logging.getLogger(__name__)


def chat_id_for(my_uid: str, other_uid: str) -> str:
    try:
        return conversation_id(my_uid, other_uid)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def messages_selector(chat_id: str, *, limit: int | None = None) -> Selector:
    return Selector(collection=paths.messages(chat_id), order_by="createdAt", limit=limit)


async def ensure_chat(store: DocumentStore, my_uid: str, other_uid: str) -> str:
    """Make sure the chat document exists so rules can check its participants."""
    chat_id = chat_id_for(my_uid, other_uid)
    await store.set(
        paths.chat(chat_id),
        conversation_mapper.participants_fields(my_uid, other_uid),
        merge=True,
    )
    return chat_id


async def get_chat(store: DocumentStore, my_uid: str, other_uid: str) -> Conversation | None:
    doc = await store.get(paths.chat(chat_id_for(my_uid, other_uid)))
    return conversation_mapper.document_to_entity(doc) if doc else None


async def send_message(
    store: DocumentStore,
    my_uid: str,
    other_uid: str,
    text: str,
) -> Message:
    """Append a message and update the chat summary in one batch."""
    body = text.strip()
    if not body:
        raise ValidationError("Message text is empty")
    chat_id = chat_id_for(my_uid, other_uid)
    message_id = store.new_id()

    batch = store.batch()
    batch.set(
        paths.chat(chat_id),
        {
            **conversation_mapper.participants_fields(my_uid, other_uid),
            **conversation_mapper.last_message_fields(my_uid, body),
        },
        merge=True,
    )
    batch.set(
        paths.message(chat_id, message_id),
        message_mapper.new_message_fields(my_uid, body),
    )
    await batch.commit()
    logger.debug("Message %s sent in %s", message_id, chat_id)

    stored = await store.get(paths.message(chat_id, message_id))
    if stored is None:
        raise NotFoundError("Message vanished after write")
    return message_mapper.document_to_entity(stored, chat_id)


async def list_messages(
    store: DocumentStore,
    my_uid: str,
    other_uid: str,
    *,
    limit: int | None = None,
) -> list[Message]:
    chat_id = chat_id_for(my_uid, other_uid)
    docs = await store.query(messages_selector(chat_id, limit=limit))
    return [message_mapper.document_to_entity(doc, chat_id) for doc in docs]


def watch_messages(
    coordinator: SubscriptionCoordinator,
    my_uid: str,
    other_uid: str,
    on_change: Callable[[list[Message]], None],
) -> SubscriptionHandle:
    chat_id = chat_id_for(my_uid, other_uid)
    return coordinator.subscribe(
        messages_selector(chat_id),
        lambda docs: on_change(
            [message_mapper.document_to_entity(doc, chat_id) for doc in docs]
        ),
        key=("messages", chat_id),
    )
