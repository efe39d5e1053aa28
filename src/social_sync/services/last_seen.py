"""``chatsLastSeenAt`` bookkeeping: server value first, local cache as fallback."""
from __future__ import annotations

import logging
from datetime import datetime

from social_sync.application.mappers import user as user_mapper
from social_sync.application.ports.cache import LAST_SEEN_KEY, LocalCache, MemoryCache
from social_sync.application.ports.clock import EPOCH, Clock, SystemClock, from_epoch_seconds
from social_sync.application.ports.store import SERVER_TIMESTAMP, DocumentStore
from social_sync.domain.value_objects import paths

logger = logging.getLogger(__name__)


class LastSeenTracker:
    def __init__(
        self,
        store: DocumentStore,
        cache: LocalCache | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._cache = cache if cache is not None else MemoryCache()
        self._clock = clock or SystemClock()

    def cached(self) -> datetime:
        seconds = self._cache.get(LAST_SEEN_KEY)
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            return from_epoch_seconds(float(seconds))
        self._cache.set(LAST_SEEN_KEY, 0.0)
        return EPOCH

    async def load(self, uid: str) -> datetime:
        """Return the user's last-seen marker, refreshing the local cache."""
        try:
            doc = await self._store.get(paths.user(uid))
        except Exception:
            logger.warning("Could not read last-seen marker for %s, using local cache", uid, exc_info=True)
            return self.cached()

        server_seen = user_mapper.document_to_entity(doc).chats_last_seen_at if doc else None
        if server_seen is None:
            return self.cached()
        self._cache.set(LAST_SEEN_KEY, server_seen.timestamp())
        return server_seen

    async def mark_seen_now(self, uid: str) -> datetime:
        now = self._clock.now()
        self._cache.set(LAST_SEEN_KEY, now.timestamp())
        await self._store.set(
            paths.user(uid), {"chatsLastSeenAt": SERVER_TIMESTAMP}, merge=True,
        )
        return now
