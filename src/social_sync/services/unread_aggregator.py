"""Per-conversation unread counts for the signed-in user.

One subscription lists the conversations the user participates in; each
conversation gets a nested subscription on its messages created after the
baseline. A conversation's count is the number of messages in its latest
snapshot not sent by the user, recomputed from scratch on every snapshot.

Nothing is published until the conversation list and every conversation it
names have delivered (or failed) once, so listeners never see a partially
built map, whether the store delivers snapshots inline or on a later loop
iteration.

The baseline (``chatsLastSeenAt``) is read once when the aggregator starts.
Marking chats as seen while it runs does not change counts until the next
``restart()``; this keeps the number of live subscriptions fixed at one per
conversation.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from functools import partial
from typing import Callable

from social_sync.application.mappers import message as message_mapper
from social_sync.application.ports.session import RemoveListener, SessionProvider
from social_sync.application.ports.store import Document, DocumentStore, FieldFilter, Selector
from social_sync.domain.value_objects import paths
from social_sync.domain.value_objects.enums import AggregatorState
from social_sync.services.last_seen import LastSeenTracker
from social_sync.services.subscriptions import SubscriptionCoordinator, SubscriptionHandle

logger = logging.getLogger(__name__)

UnreadListener = Callable[[dict[str, int]], None]


def conversations_selector(uid: str) -> Selector:
    return Selector(
        collection=paths.CHATS,
        filters=(FieldFilter("participants", "array_contains", uid),),
    )


def unread_messages_selector(conversation_id: str, baseline: datetime) -> Selector:
    return Selector(
        collection=paths.messages(conversation_id),
        filters=(FieldFilter("createdAt", ">", baseline),),
        order_by="createdAt",
    )


class UnreadAggregator:
    def __init__(
        self,
        store: DocumentStore,
        last_seen: LastSeenTracker,
        *,
        coordinator: SubscriptionCoordinator | None = None,
    ) -> None:
        self._last_seen = last_seen
        self._coordinator = coordinator or SubscriptionCoordinator(store)
        self._state = AggregatorState.IDLE
        self._uid: str | None = None
        self._baseline: datetime | None = None
        self._generation = 0
        self._conversations: SubscriptionHandle | None = None
        self._message_subs: dict[str, SubscriptionHandle] = {}
        self._counts: dict[str, int] = {}
        self._published: dict[str, int] = {}
        self._listeners: list[UnreadListener] = []
        # Conversations whose message subscription has not delivered yet.
        self._awaiting: set[str] = set()
        self._index_delivered = False
        self._ready = asyncio.Event()
        self._pending: asyncio.Task[None] | None = None

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def uid(self) -> str | None:
        return self._uid

    @property
    def baseline(self) -> datetime | None:
        return self._baseline

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    @property
    def has_unread(self) -> bool:
        return bool(self._counts)

    @property
    def open_subscriptions(self) -> int:
        return len(self._message_subs) + (1 if self._conversations else 0)

    def unread_count(self, conversation_id: str) -> int:
        return self._counts.get(conversation_id, 0)

    def add_listener(self, listener: UnreadListener) -> RemoveListener:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def start(self, uid: str) -> None:
        """Enter the listening state for ``uid``, dropping any previous session."""
        self._teardown()
        self._generation += 1
        generation = self._generation
        self._uid = uid
        self._state = AggregatorState.STARTING

        baseline = await self._last_seen.load(uid)
        if generation != self._generation:
            logger.debug("Discarding stale aggregator start for %s", uid)
            return

        self._baseline = baseline
        self._state = AggregatorState.LISTENING
        self._conversations = self._coordinator.subscribe(
            conversations_selector(uid),
            self._on_conversations,
            key=("unread", uid, "chats"),
            on_error=self._on_conversations_error,
        )
        logger.info("Unread aggregator listening for %s (baseline=%s)", uid, baseline.isoformat())

    async def restart(self) -> None:
        """Re-read the baseline and resubscribe for the current user."""
        if self._uid is not None:
            await self.start(self._uid)

    def stop(self) -> None:
        """Back to idle: every subscription released, map emptied, one publish."""
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        was_active = self._state is not AggregatorState.IDLE
        self._teardown()
        self._uid = None
        self._baseline = None
        self._state = AggregatorState.IDLE
        self._publish_if_changed()
        if was_active:
            logger.info("Unread aggregator stopped")

    def attach(self, session: SessionProvider) -> RemoveListener:
        """Follow ``session``: start on sign-in, stop on sign-out.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()

        def on_auth_state_changed(uid: str | None) -> None:
            if uid is None:
                self.stop()
                return
            if uid == self._uid and self._state is not AggregatorState.IDLE:
                return
            if self._pending is not None and not self._pending.done():
                self._pending.cancel()
            self._pending = loop.create_task(self.start(uid), name=f"unread-start-{uid}")

        remove = session.on_auth_state_changed(on_auth_state_changed)

        def detach() -> None:
            remove()
            self.stop()

        return detach

    async def wait_until_settled(self) -> None:
        """Wait for a start scheduled by ``attach`` to finish (or be discarded)."""
        pending = self._pending
        if pending is not None:
            await asyncio.wait({pending})
            if not pending.cancelled() and pending.exception() is not None:
                logger.error("Unread aggregator failed to start", exc_info=pending.exception())

    async def wait_until_ready(self) -> None:
        """Wait until every conversation has delivered its first snapshot.

        Returns immediately when idle.
        """
        await self.wait_until_settled()
        if self._state is AggregatorState.LISTENING:
            await self._ready.wait()

    def _teardown(self) -> None:
        for handle in self._message_subs.values():
            self._coordinator.unsubscribe(handle)
        self._message_subs.clear()
        self._coordinator.unsubscribe(self._conversations)
        self._conversations = None
        self._counts.clear()
        self._awaiting.clear()
        self._index_delivered = False
        self._ready.clear()

    def _on_conversations(self, documents: list[Document]) -> None:
        uid, baseline = self._uid, self._baseline
        if uid is None or baseline is None or self._state is not AggregatorState.LISTENING:
            return

        current = {doc.id for doc in documents}
        self._index_delivered = True
        for conversation_id in [c for c in self._message_subs if c not in current]:
            self._coordinator.unsubscribe(self._message_subs.pop(conversation_id))
            self._counts.pop(conversation_id, None)
            self._awaiting.discard(conversation_id)

        added = sorted(current - self._message_subs.keys())
        # Marked before subscribing: a store may deliver inside subscribe().
        self._awaiting.update(added)
        for conversation_id in added:
            self._message_subs[conversation_id] = self._coordinator.subscribe(
                unread_messages_selector(conversation_id, baseline),
                partial(self._on_messages, conversation_id),
                key=("unread", uid, "messages", conversation_id),
                on_error=partial(self._on_messages_error, conversation_id),
            )
        self._publish_if_changed()

    def _on_conversations_error(self, exc: Exception) -> None:
        if self._state is AggregatorState.LISTENING and not self._index_delivered:
            self._index_delivered = True
            self._publish_if_changed()

    def _on_messages(self, conversation_id: str, documents: list[Document]) -> None:
        uid = self._uid
        if uid is None or self._state is not AggregatorState.LISTENING:
            return

        unread = sum(
            1
            for doc in documents
            if message_mapper.document_to_entity(doc, conversation_id).sender_id != uid
        )
        self._awaiting.discard(conversation_id)
        if unread:
            self._counts[conversation_id] = unread
        else:
            self._counts.pop(conversation_id, None)
        self._publish_if_changed()

    def _on_messages_error(self, conversation_id: str, exc: Exception) -> None:
        # Counted as settled so one failed conversation cannot hold back the rest.
        if conversation_id in self._awaiting:
            self._awaiting.discard(conversation_id)
            self._publish_if_changed()

    def _publish_if_changed(self) -> None:
        if self._state is AggregatorState.LISTENING and (
            self._awaiting or not self._index_delivered
        ):
            return
        self._ready.set()
        if self._counts == self._published:
            return
        self._published = dict(self._counts)
        for listener in list(self._listeners):
            try:
                listener(dict(self._published))
            except Exception:
                logger.exception("Unread listener failed")
