"""Cloud Firestore implementation of the document store port."""
from __future__ import annotations

import asyncio
import logging
import uuid
from functools import partial
from typing import Any, Awaitable, Callable, TypeVar

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter as FirestoreFieldFilter

from social_sync.application.ports.store import (
    DOCUMENT_ID,
    SERVER_TIMESTAMP,
    Document,
    ErrorCallback,
    Selector,
    SnapshotCallback,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _encode(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _to_document(snapshot: Any) -> Document:
    return Document(
        id=snapshot.id,
        path=snapshot.reference.path,
        data=snapshot.to_dict() or {},
    )


def _build_query(client: Any, selector: Selector) -> Any:
    collection = client.collection(selector.collection)
    query = collection
    for f in selector.filters:
        value = f.value
        if f.field == DOCUMENT_ID:
            if f.op == "in":
                value = [collection.document(v) for v in value]
            else:
                value = collection.document(value)
        elif isinstance(value, tuple):
            value = list(value)
        query = query.where(filter=FirestoreFieldFilter(f.field, f.op, value))
    if selector.order_by:
        direction = firestore.Query.DESCENDING if selector.descending else firestore.Query.ASCENDING
        query = query.order_by(selector.order_by, direction=direction)
    if selector.limit:
        query = query.limit(selector.limit)
    return query


class _FirestoreTransaction:
    def __init__(self, client: firestore.AsyncClient, transaction: Any) -> None:
        self._client = client
        self._transaction = transaction

    async def get(self, path: str) -> Document | None:
        snapshot = await self._client.document(path).get(transaction=self._transaction)
        return _to_document(snapshot) if snapshot.exists else None

    def set(self, path: str, fields: dict[str, Any], *, merge: bool = False) -> None:
        self._transaction.set(self._client.document(path), _encode(fields), merge=merge)

    def delete(self, path: str) -> None:
        self._transaction.delete(self._client.document(path))


class _FirestoreBatch:
    def __init__(self, client: firestore.AsyncClient) -> None:
        self._client = client
        self._batch = client.batch()

    def set(self, path: str, fields: dict[str, Any], *, merge: bool = False) -> None:
        self._batch.set(self._client.document(path), _encode(fields), merge=merge)

    def delete(self, path: str) -> None:
        self._batch.delete(self._client.document(path))

    async def commit(self) -> None:
        await self._batch.commit()


class _WatchSubscription:
    def __init__(self, watch: Any) -> None:
        self._watch = watch

    def on_terminated(self, callback: Callable[[Exception], None]) -> None:
        """Run ``callback`` when the watch stream ends without recovering.

        ``Watch`` exposes no error callback; a stream that fails for good
        (permission denied, missing index) only completes its RPC. Our own
        ``unsubscribe`` completes it too, which is not reported.
        """
        rpc = getattr(self._watch, "_rpc", None)
        if rpc is None:
            return

        def _done(future: Any) -> None:
            if self._watch is None:
                return
            if isinstance(future, Exception):
                callback(future)
            else:
                callback(RuntimeError("watch stream terminated"))

        rpc.add_done_callback(_done)

    def unsubscribe(self) -> None:
        watch, self._watch = self._watch, None
        if watch is not None:
            watch.unsubscribe()


class FirestoreDocumentStore:
    """Reads and writes go through the async client; live subscriptions use
    ``on_snapshot`` watches of the sync client, whose callbacks run on a
    background thread and are handed back to the subscribing loop.
    """

    def __init__(self, client: firestore.AsyncClient, watch_client: firestore.Client) -> None:
        self._client = client
        self._watch_client = watch_client

    async def get(self, path: str) -> Document | None:
        snapshot = await self._client.document(path).get()
        return _to_document(snapshot) if snapshot.exists else None

    async def set(self, path: str, fields: dict[str, Any], *, merge: bool = False) -> None:
        await self._client.document(path).set(_encode(fields), merge=merge)

    async def delete(self, path: str) -> None:
        await self._client.document(path).delete()

    async def query(self, selector: Selector) -> list[Document]:
        query = _build_query(self._client, selector)
        return [_to_document(snapshot) async for snapshot in query.stream()]

    async def run_transaction(self, fn: Callable[[Any], Awaitable[T]]) -> T:
        @firestore.async_transactional
        async def _run(transaction: Any) -> T:
            return await fn(_FirestoreTransaction(self._client, transaction))

        return await _run(self._client.transaction())

    def batch(self) -> _FirestoreBatch:
        return _FirestoreBatch(self._client)

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def subscribe(
        self,
        selector: Selector,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> _WatchSubscription:
        loop = asyncio.get_running_loop()
        query = _build_query(self._watch_client, selector)

        def _handoff(callback: Callable[..., None], *args: Any) -> None:
            try:
                loop.call_soon_threadsafe(callback, *args)
            except RuntimeError:
                logger.debug("Event loop closed, dropping snapshot for %s", selector.collection)

        def _on_watch(snapshots: list[Any], _changes: Any, _read_time: Any) -> None:
            try:
                documents = [_to_document(s) for s in snapshots]
            except Exception as exc:
                logger.exception("Could not decode snapshot for %s", selector.collection)
                if on_error is not None:
                    _handoff(on_error, exc)
                return
            _handoff(on_snapshot, documents)

        subscription = _WatchSubscription(query.on_snapshot(_on_watch))
        if on_error is not None:
            subscription.on_terminated(partial(_handoff, on_error))
        return subscription
