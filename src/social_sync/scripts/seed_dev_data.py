"""Seed development data: two users who are friends and a short chat between them."""
from __future__ import annotations

import asyncio
import logging

from social_sync.config import settings
from social_sync.infrastructure.firestore.client import create_document_store
from social_sync.services import chat_service, friend_service, user_service

logger = logging.getLogger(__name__)

ALICE = "dev-alice"
BOB = "dev-bob"


async def seed() -> None:
    store = create_document_store(settings)

    await user_service.add_user(store, ALICE, "alice@example.com", "alice")
    await user_service.add_user(store, BOB, "bob@example.com", "bob")
    await friend_service.add_friend(store, ALICE, BOB)

    messages_data = [
        (ALICE, BOB, "Hey Bob! Did you see the new post?"),
        (BOB, ALICE, "Not yet, where was it taken?"),
        (ALICE, BOB, "Down by the harbour."),
        (BOB, ALICE, "Nice, I'll have a look."),
    ]
    for sender, peer, text in messages_data:
        await chat_service.send_message(store, sender, peer, text)

    chat_id = chat_service.chat_id_for(ALICE, BOB)
    logger.info("Seeded chat %s with %d messages", chat_id, len(messages_data))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
