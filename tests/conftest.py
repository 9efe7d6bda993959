from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from pymirror.config import MirrorConfig
from pymirror.mirror import FirebaseMirror
from pymirror.paths import normalize_path
from pymirror.state.reducer import MirrorReducer
from pymirror.state.store import StateStore, combine_reducers


@dataclass
class FakeSnapshot:
    value: Any

    def val(self) -> Any:
        return self.value


@dataclass(eq=False)
class FakeReference:
    database: FakeDatabase
    path: str
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)

    def _chain(self, name: str, *args: Any) -> FakeReference:
        return FakeReference(self.database, self.path, [*self.calls, (name, args)])

    def order_by_key(self) -> FakeReference:
        return self._chain("order_by_key")

    def order_by_child(self, name: str) -> FakeReference:
        return self._chain("order_by_child", name)

    def order_by_value(self) -> FakeReference:
        return self._chain("order_by_value")

    def limit_to_first(self, limit: int) -> FakeReference:
        return self._chain("limit_to_first", limit)

    def limit_to_last(self, limit: int) -> FakeReference:
        return self._chain("limit_to_last", limit)

    def start_at(self, value: Any) -> FakeReference:
        return self._chain("start_at", value)

    def end_at(self, value: Any) -> FakeReference:
        return self._chain("end_at", value)

    def equal_to(self, value: Any) -> FakeReference:
        return self._chain("equal_to", value)

    def on(self, event: str, callback: Callable[[FakeSnapshot], None]) -> None:
        self.database.listeners.append((self, event, callback))

    def off(self, event: str) -> None:
        self.database.detached.append((normalize_path(self.path), event))
        self.database.listeners = [entry for entry in self.database.listeners if entry[0] is not self]

    def once(self, event: str, callback: Callable[[FakeSnapshot], None]) -> None:
        self.database.reads.append(normalize_path(self.path))
        if self.database.answer_reads:
            callback(FakeSnapshot(self.database.values.get(normalize_path(self.path))))
        else:
            self.database.pending_reads.append((self, callback))


@dataclass(eq=False)
class FakeDatabase:
    """In-memory stand-in for a realtime database, recording every interaction."""

    values: dict[str, Any] = field(default_factory=dict)
    answer_reads: bool = True
    listeners: list[tuple[FakeReference, str, Callable[[FakeSnapshot], None]]] = field(default_factory=list)
    detached: list[tuple[str, str]] = field(default_factory=list)
    reads: list[str] = field(default_factory=list)
    pending_reads: list[tuple[FakeReference, Callable[[FakeSnapshot], None]]] = field(default_factory=list)

    def ref(self, path: str) -> FakeReference:
        return FakeReference(self, path)

    def emit(self, path: str, value: Any) -> None:
        for ref, _event, callback in list(self.listeners):
            if normalize_path(ref.path) == normalize_path(path):
                callback(FakeSnapshot(value))

    def answer_pending(self) -> None:
        pending, self.pending_reads = self.pending_reads, []
        for ref, callback in pending:
            callback(FakeSnapshot(self.values.get(normalize_path(ref.path))))


@dataclass
class FakeApp:
    db: FakeDatabase

    def database(self) -> FakeDatabase:
        return self.db


class RecordingStore(StateStore):
    """State store that keeps every dispatched action."""

    def __init__(self, reducer: Any) -> None:
        super().__init__(reducer)
        self.actions: list[Any] = []

    def dispatch(self, action: Any) -> Any:
        self.actions.append(action)
        return super().dispatch(action)


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def clock() -> Callable[[], float]:
    counter = itertools.count(1)
    return lambda: float(next(counter))


@pytest.fixture
def make_mirror(
    database: FakeDatabase,
    clock: Callable[[], float],
) -> Callable[..., tuple[FirebaseMirror, RecordingStore]]:
    def build(**overrides: Any) -> tuple[FirebaseMirror, RecordingStore]:
        options: dict[str, Any] = {
            "get_firebase": lambda: FakeApp(database),
            "clock": clock,
            "sync_interval": 0.01,
        }
        options.update(overrides)
        mirror = FirebaseMirror(MirrorConfig(**options))
        store = RecordingStore(combine_reducers({"firebaseMirror": mirror.reducer}))
        return mirror, store

    return build


@pytest.fixture
def make_store(clock: Callable[[], float]) -> Callable[..., RecordingStore]:
    def build(reducer: Any = None) -> RecordingStore:
        return RecordingStore(combine_reducers({"firebaseMirror": reducer or MirrorReducer(clock=clock)}))

    return build
