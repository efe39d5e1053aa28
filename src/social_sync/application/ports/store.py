"""Remote document store port.

Every live subscription delivers the *full* current result set of its
selector on each change, never a delta. Consumers replace their previous
state with each snapshot.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Protocol, TypeVar

T = TypeVar("T")

FilterOp = Literal["==", "!=", "<", "<=", ">", ">=", "array_contains", "in"]

DOCUMENT_ID = "__name__"


class _ServerTimestamp:
    __slots__ = ()

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    # Compared by identity; copies must stay the same object.
    def __copy__(self) -> _ServerTimestamp:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _ServerTimestamp:
        return self

    def __reduce__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP: Any = _ServerTimestamp()


@dataclass(frozen=True, slots=True)
class Document:
    id: str
    path: str
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass(frozen=True, slots=True)
class FieldFilter:
    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True, slots=True)
class Selector:
    """Logical selector of a query or live subscription. Hashable."""

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None


SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class Transaction(Protocol):
    async def get(self, path: str) -> Document | None: ...
    def set(self, path: str, fields: dict[str, Any], *, merge: bool = False) -> None: ...
    def delete(self, path: str) -> None: ...


class WriteBatch(Protocol):
    def set(self, path: str, fields: dict[str, Any], *, merge: bool = False) -> None: ...
    def delete(self, path: str) -> None: ...
    async def commit(self) -> None: ...


class DocumentStore(Protocol):
    async def get(self, path: str) -> Document | None: ...

    async def set(
        self, path: str, fields: dict[str, Any], *, merge: bool = False,
    ) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def query(self, selector: Selector) -> list[Document]: ...

    async def run_transaction(
        self, fn: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        """Run ``fn`` as an atomic read-modify-write; may be retried by the store."""
        ...

    def batch(self) -> WriteBatch: ...

    def new_id(self) -> str: ...

    def subscribe(
        self,
        selector: Selector,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Open a live subscription; callbacks run on the subscribing event loop."""
        ...
