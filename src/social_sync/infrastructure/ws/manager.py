"""In-process registry of live WebSocket sessions."""
from __future__ import annotations

import logging

from social_sync.infrastructure.ws.live_session import LiveSession

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks live sessions per principal so shutdown can close them all."""

    def __init__(self) -> None:
        self._sessions: dict[str, set[LiveSession]] = {}

    def __len__(self) -> int:
        return sum(len(s) for s in self._sessions.values())

    def sessions_for(self, principal_key: str) -> set[LiveSession]:
        return set(self._sessions.get(principal_key, set()))

    def register(self, session: LiveSession) -> None:
        key = session.principal.principal_key
        self._sessions.setdefault(key, set()).add(session)
        logger.debug("WS connected: %s (total=%d)", key, len(self))

    def unregister(self, session: LiveSession) -> None:
        key = session.principal.principal_key
        sessions = self._sessions.get(key)
        if sessions:
            sessions.discard(session)
            if not sessions:
                del self._sessions[key]
        logger.debug("WS disconnected: %s", key)

    async def close_all(self) -> None:
        sessions = [s for group in self._sessions.values() for s in group]
        self._sessions.clear()
        for session in sessions:
            await session.close()
        if sessions:
            logger.info("Closed %d live sessions", len(sessions))
