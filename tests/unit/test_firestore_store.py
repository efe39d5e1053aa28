from __future__ import annotations

from social_sync.infrastructure.firestore.store import _WatchSubscription


class FakeRpc:
    def __init__(self) -> None:
        self.callbacks = []

    def add_done_callback(self, callback) -> None:
        self.callbacks.append(callback)

    def finish(self, outcome) -> None:
        for callback in self.callbacks:
            callback(outcome)


class FakeWatch:
    def __init__(self) -> None:
        self._rpc = FakeRpc()
        self.unsubscribed = 0

    def unsubscribe(self) -> None:
        self.unsubscribed += 1
        self._rpc.finish(RuntimeError("cancelled"))


def test_terminated_stream_is_reported():
    watch = FakeWatch()
    subscription = _WatchSubscription(watch)
    errors = []
    subscription.on_terminated(errors.append)

    failure = PermissionError("missing permissions")
    watch._rpc.finish(failure)

    assert errors == [failure]


def test_non_exception_outcome_is_wrapped():
    watch = FakeWatch()
    subscription = _WatchSubscription(watch)
    errors = []
    subscription.on_terminated(errors.append)

    watch._rpc.finish(object())

    assert len(errors) == 1
    assert isinstance(errors[0], RuntimeError)


def test_own_unsubscribe_is_not_reported():
    watch = FakeWatch()
    subscription = _WatchSubscription(watch)
    errors = []
    subscription.on_terminated(errors.append)

    subscription.unsubscribe()
    subscription.unsubscribe()

    assert errors == []
    assert watch.unsubscribed == 1
