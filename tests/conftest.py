"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import copy
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, TypeVar

import jwt
import pytest

from social_sync.application.dto.principal import AuthUser
from social_sync.application.exceptions import AuthError
from social_sync.application.ports.cache import MemoryCache
from social_sync.application.ports.store import (
    DOCUMENT_ID,
    SERVER_TIMESTAMP,
    Document,
    ErrorCallback,
    FieldFilter,
    Selector,
    SnapshotCallback,
)
from social_sync.config import settings
from social_sync.domain.value_objects import paths
from social_sync.domain.value_objects.enums import AuthErrorCode
from social_sync.domain.value_objects.ids import conversation_id
from social_sync.services.last_seen import LastSeenTracker
from social_sync.services.subscriptions import SubscriptionCoordinator

T = TypeVar("T")

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

_MISSING = object()


class FixedClock:
    """Deterministic clock; every reading is one ``step`` after the previous one."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def now(self) -> datetime:
        self.current += self.step
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class StoreFailure(RuntimeError):
    pass


def _resolve(value: Any, now: Callable[[], datetime]) -> Any:
    if value is SERVER_TIMESTAMP:
        return now()
    if isinstance(value, dict):
        return {k: _resolve(v, now) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_resolve(v, now) for v in value]
    return value


def _matches(doc_id: str, data: dict[str, Any], f: FieldFilter) -> bool:
    actual = doc_id if f.field == DOCUMENT_ID else data.get(f.field, _MISSING)
    if actual is _MISSING:
        return False
    try:
        if f.op == "==":
            return actual == f.value
        if f.op == "!=":
            return actual != f.value
        if f.op == "<":
            return actual < f.value
        if f.op == "<=":
            return actual <= f.value
        if f.op == ">":
            return actual > f.value
        if f.op == ">=":
            return actual >= f.value
        if f.op == "array_contains":
            return isinstance(actual, list) and f.value in actual
        if f.op == "in":
            return actual in f.value
    except TypeError:
        return False
    raise ValueError(f"unsupported operator {f.op}")


@dataclass
class _FakeSubscription:
    store: FakeDocumentStore
    sub_id: int
    selector: Selector
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback | None
    last: list[tuple[str, dict[str, Any]]] | None = None
    unsubscribe_calls: int = 0

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        self.store._subs.pop(self.sub_id, None)


class _FakeTransaction:
    def __init__(self, store: FakeDocumentStore) -> None:
        self._store = store
        self.writes: list[tuple[str, str, dict[str, Any] | None, bool]] = []

    async def get(self, path: str) -> Document | None:
        return self._store._read(path)

    def set(self, path: str, fields: dict[str, Any], *, merge: bool = False) -> None:
        self.writes.append(("set", path, copy.deepcopy(fields), merge))

    def delete(self, path: str) -> None:
        self.writes.append(("delete", path, None, False))


class _FakeBatch(_FakeTransaction):
    async def commit(self) -> None:
        await asyncio.sleep(0)
        self._store._apply(self.writes)


class FakeDocumentStore:
    """In-memory document store with synchronous snapshot delivery.

    A subscription receives the full result set once on subscribe and then
    whenever a write changes that result set.
    """

    def __init__(self, clock: FixedClock | None = None) -> None:
        self.clock = clock or FixedClock()
        self.docs: dict[str, dict[str, Any]] = {}
        self.fail_paths: set[str] = set()
        self.transactions = 0
        self._subs: dict[int, _FakeSubscription] = {}
        self._sub_ids = itertools.count(1)
        self._ids = itertools.count(1)
        self._read_gate: asyncio.Event | None = None

    # -- test helpers ------------------------------------------------------

    @property
    def open_subscriptions(self) -> int:
        return len(self._subs)

    def subscriptions_for(self, collection: str) -> list[_FakeSubscription]:
        return [s for s in self._subs.values() if s.selector.collection == collection]

    def put(self, path: str, **fields: Any) -> None:
        self._apply([("set", path, fields, False)])

    def data(self, path: str) -> dict[str, Any] | None:
        doc = self.docs.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    def hold_reads(self) -> asyncio.Event:
        """Block ``get`` until the returned event is set."""
        self._read_gate = asyncio.Event()
        return self._read_gate

    def emit_error(self, collection: str, exc: Exception | None = None) -> None:
        for sub in self.subscriptions_for(collection):
            if sub.on_error is not None:
                sub.on_error(exc or StoreFailure(f"listener for {collection} failed"))

    # -- DocumentStore -----------------------------------------------------

    async def get(self, path: str) -> Document | None:
        if self._read_gate is not None:
            await self._read_gate.wait()
        await asyncio.sleep(0)
        self._check(path)
        return self._read(path)

    async def set(self, path: str, fields: dict[str, Any], *, merge: bool = False) -> None:
        await asyncio.sleep(0)
        self._apply([("set", path, fields, merge)])

    async def delete(self, path: str) -> None:
        await asyncio.sleep(0)
        self._apply([("delete", path, None, False)])

    async def query(self, selector: Selector) -> list[Document]:
        await asyncio.sleep(0)
        self._check(selector.collection)
        return [Document(id=i, path=f"{selector.collection}/{i}", data=d) for i, d in self._select(selector)]

    async def run_transaction(self, fn: Callable[[_FakeTransaction], Awaitable[T]]) -> T:
        self.transactions += 1
        tx = _FakeTransaction(self)
        result = await fn(tx)
        self._apply(tx.writes)
        return result

    def batch(self) -> _FakeBatch:
        return _FakeBatch(self)

    def new_id(self) -> str:
        return f"id{next(self._ids):04d}"

    def subscribe(
        self,
        selector: Selector,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> _FakeSubscription:
        self._check(selector.collection)
        sub = _FakeSubscription(self, next(self._sub_ids), selector, on_snapshot, on_error)
        self._subs[sub.sub_id] = sub
        self._deliver(sub, force=True)
        return sub

    # -- internals ---------------------------------------------------------

    def _check(self, path: str) -> None:
        if path in self.fail_paths:
            raise StoreFailure(f"injected failure for {path}")

    def _read(self, path: str) -> Document | None:
        data = self.docs.get(path)
        if data is None:
            return None
        return Document(id=path.rsplit("/", 1)[-1], path=path, data=copy.deepcopy(data))

    def _apply(self, writes: list[tuple[str, str, dict[str, Any] | None, bool]]) -> None:
        for _op, path, _fields, _merge in writes:
            self._check(path)
        for op, path, fields, merge in writes:
            if op == "delete":
                self.docs.pop(path, None)
                continue
            resolved = _resolve(fields or {}, self.clock.now)
            if merge and path in self.docs:
                self.docs[path].update(resolved)
            else:
                self.docs[path] = resolved
        self._notify()

    def _select(self, selector: Selector) -> list[tuple[str, dict[str, Any]]]:
        rows = []
        for path, data in self.docs.items():
            parent, _, doc_id = path.rpartition("/")
            if parent != selector.collection:
                continue
            if all(_matches(doc_id, data, f) for f in selector.filters):
                rows.append((doc_id, copy.deepcopy(data)))

        if selector.order_by:
            rows = [r for r in rows if selector.order_by in r[1]]
            rows.sort(key=lambda r: (r[1][selector.order_by], r[0]), reverse=selector.descending)
        else:
            rows.sort(key=lambda r: r[0])
        if selector.limit:
            rows = rows[:selector.limit]
        return rows

    def _notify(self) -> None:
        for sub_id, sub in list(self._subs.items()):
            if sub_id in self._subs:
                self._deliver(sub)

    def _deliver(self, sub: _FakeSubscription, *, force: bool = False) -> None:
        rows = self._select(sub.selector)
        if not force and rows == sub.last:
            return
        sub.last = rows
        sub.on_snapshot(
            [Document(id=i, path=f"{sub.selector.collection}/{i}", data=copy.deepcopy(d)) for i, d in rows]
        )


class QueuedDeliveryStore(FakeDocumentStore):
    """Delivers every snapshot on a later loop iteration, as a watch thread would."""

    def _deliver(self, sub: _FakeSubscription, *, force: bool = False) -> None:
        asyncio.get_running_loop().call_soon(self._deliver_now, sub, force)

    def _deliver_now(self, sub: _FakeSubscription, force: bool) -> None:
        if sub.sub_id in self._subs:
            super()._deliver(sub, force=force)


async def drain(turns: int = 20) -> None:
    for _ in range(turns):
        await asyncio.sleep(0)


@dataclass
class FakeAuthBackend:
    accounts: dict[str, tuple[str, str]] = field(default_factory=dict)
    unreachable: bool = False
    _uids: Any = field(default_factory=lambda: itertools.count(1))

    async def sign_in(self, email: str, password: str) -> AuthUser:
        if self.unreachable:
            raise AuthError(AuthErrorCode.NETWORK_UNREACHABLE)
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIAL)
        return AuthUser(uid=account[1], email=email, id_token=f"token-{account[1]}")

    async def sign_up(self, email: str, password: str) -> AuthUser:
        if email in self.accounts:
            raise AuthError(AuthErrorCode.EMAIL_IN_USE)
        if len(password) < 6:
            raise AuthError(AuthErrorCode.WEAK_PASSWORD)
        uid = f"uid-{next(self._uids)}"
        self.accounts[email] = (password, uid)
        return AuthUser(uid=uid, email=email, id_token=f"token-{uid}")


def seed_user(
    store: FakeDocumentStore,
    uid: str,
    username: str | None = None,
    **extra: Any,
) -> None:
    name = username or uid
    fields: dict[str, Any] = {"uid": uid, "email": f"{name}@example.com", "username": name, "pfpData": ""}
    fields.update(extra)
    store.put(paths.user(uid), **fields)
    store.put(paths.username(name), uid=uid)


def seed_chat(store: FakeDocumentStore, a: str, b: str) -> str:
    chat_id = conversation_id(a, b)
    store.put(paths.chat(chat_id), participants=sorted([a, b]))
    return chat_id


def seed_message(
    store: FakeDocumentStore,
    chat_id: str,
    sender: str,
    text: str,
    created_at: datetime,
) -> str:
    message_id = store.new_id()
    store.put(paths.message(chat_id, message_id), text=text, senderId=sender, createdAt=created_at)
    return message_id


def make_token(uid: str, email: str | None = None) -> str:
    payload: dict[str, Any] = {"sub": uid}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store(clock: FixedClock) -> FakeDocumentStore:
    return FakeDocumentStore(clock)


@pytest.fixture
def coordinator(store: FakeDocumentStore) -> SubscriptionCoordinator:
    return SubscriptionCoordinator(store)


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def last_seen(store: FakeDocumentStore, cache: MemoryCache, clock: FixedClock) -> LastSeenTracker:
    return LastSeenTracker(store, cache, clock)
