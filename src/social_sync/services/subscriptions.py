"""Live subscription coordinator.

Owns every live subscription opened on behalf of one context (a signed-in
session, a WebSocket connection) and guarantees each is released exactly
once. Subscriptions are keyed; opening a second subscription under an
active key replaces the first.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Hashable

from social_sync.application.ports.store import (
    Document,
    DocumentStore,
    ErrorCallback,
    Selector,
    SnapshotCallback,
    Subscription,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SubscriptionHandle:
    key: Hashable
    token: int


class _Entry:
    __slots__ = ("handle", "selector", "subscription", "released")

    def __init__(self, handle: SubscriptionHandle, selector: Selector) -> None:
        self.handle = handle
        self.selector = selector
        self.subscription: Subscription | None = None
        self.released = False


class SubscriptionCoordinator:
    """Keyed registry of live store subscriptions.

    Mutated only from the event loop thread; the store marshals snapshot
    delivery onto that loop, so no locking is needed.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._entries: dict[Hashable, _Entry] = {}
        self._tokens = itertools.count(1)
        self._closed = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @property
    def active_keys(self) -> list[Hashable]:
        return list(self._entries)

    @property
    def closed(self) -> bool:
        return self._closed

    def is_active(self, handle: SubscriptionHandle) -> bool:
        entry = self._entries.get(handle.key)
        return entry is not None and entry.handle == handle

    def subscribe(
        self,
        selector: Selector,
        on_snapshot: SnapshotCallback,
        *,
        key: Hashable | None = None,
        on_error: ErrorCallback | None = None,
    ) -> SubscriptionHandle:
        """Open a subscription for ``selector``; ``key`` defaults to the selector."""
        if self._closed:
            raise RuntimeError("SubscriptionCoordinator is closed")

        key = selector if key is None else key
        self.unsubscribe_key(key)

        handle = SubscriptionHandle(key=key, token=next(self._tokens))
        entry = _Entry(handle, selector)
        # Registered first: the store may deliver the initial snapshot synchronously.
        self._entries[key] = entry
        try:
            subscription = self._store.subscribe(
                selector,
                self._deliver_to(handle, on_snapshot),
                self._report_to(handle, on_error),
            )
        except Exception:
            self._entries.pop(key, None)
            raise

        entry.subscription = subscription
        if entry.released:
            # Released from inside its own initial delivery.
            self._close_quietly(subscription, key)
        else:
            logger.debug("Subscribed %r (open=%d)", key, len(self._entries))
        return handle

    def unsubscribe(self, handle: SubscriptionHandle | None) -> None:
        """Release ``handle``. Safe to call repeatedly and with stale handles."""
        if handle is None:
            return
        entry = self._entries.get(handle.key)
        if entry is None or entry.handle != handle:
            return
        self._release(entry)

    def unsubscribe_key(self, key: Hashable) -> None:
        entry = self._entries.get(key)
        if entry is not None:
            self._release(entry)

    def close(self) -> None:
        """Release every subscription. Further ``subscribe`` calls fail."""
        if self._closed:
            return
        self._closed = True
        for entry in list(self._entries.values()):
            self._release(entry)
        logger.debug("Subscription coordinator closed")

    def _release(self, entry: _Entry) -> None:
        if entry.released:
            return
        entry.released = True
        self._entries.pop(entry.handle.key, None)
        if entry.subscription is not None:
            self._close_quietly(entry.subscription, entry.handle.key)
        logger.debug("Unsubscribed %r (open=%d)", entry.handle.key, len(self._entries))

    @staticmethod
    def _close_quietly(subscription: Subscription, key: Hashable) -> None:
        try:
            subscription.unsubscribe()
        except Exception:
            logger.exception("Error closing subscription %r", key)

    def _deliver_to(
        self, handle: SubscriptionHandle, callback: SnapshotCallback,
    ) -> SnapshotCallback:
        def deliver(documents: list[Document]) -> None:
            if not self.is_active(handle):
                logger.debug("Dropping snapshot for released subscription %r", handle.key)
                return
            try:
                callback(documents)
            except Exception:
                logger.exception("Snapshot callback failed for %r", handle.key)

        return deliver

    def _report_to(self, handle: SubscriptionHandle, callback: ErrorCallback | None):
        def report(exc: Exception) -> None:
            # Last good snapshot stays in place; the subscription is not retried.
            logger.warning(
                "Live subscription %r failed: %s", handle.key, exc, exc_info=exc,
            )
            if callback is None or not self.is_active(handle):
                return
            try:
                callback(exc)
            except Exception:
                logger.exception("Error callback failed for %r", handle.key)

        return report
