"""Sign in with email/password and log unread counts as they change.

Usage: python -m social_sync.scripts.watch_unread EMAIL PASSWORD
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from social_sync.config import settings
from social_sync.infrastructure.auth.firebase_rest import FirebaseAuthClient
from social_sync.infrastructure.auth.session import SessionManager
from social_sync.infrastructure.cache.json_cache import JsonFileCache
from social_sync.infrastructure.firestore.client import create_document_store
from social_sync.services.last_seen import LastSeenTracker
from social_sync.services.unread_aggregator import UnreadAggregator

logger = logging.getLogger(__name__)


async def watch(email: str, password: str) -> None:
    store = create_document_store(settings)
    cache = JsonFileCache(settings.LOCAL_CACHE_PATH)
    backend = FirebaseAuthClient(
        settings.FIREBASE_WEB_API_KEY,
        base_url=settings.FIREBASE_AUTH_URL,
        timeout=settings.FIREBASE_AUTH_TIMEOUT,
    )
    session = SessionManager(backend, store, cache)
    aggregator = UnreadAggregator(store, LastSeenTracker(store, cache))

    def on_unread(counts: dict[str, int]) -> None:
        logger.info("Unread: total=%d %s", sum(counts.values()), counts)

    aggregator.add_listener(on_unread)
    detach = aggregator.attach(session)
    try:
        await session.sign_in(email, password)
        await aggregator.wait_until_settled()
        logger.info("Watching unread chats for %s (Ctrl-C to stop)", session.current_user_id())
        await asyncio.Event().wait()
    finally:
        detach()
        session.sign_out()
        await backend.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("password")
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL)
    try:
        asyncio.run(watch(args.email, args.password))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
