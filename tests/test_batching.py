from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from pymirror._batching import SnapshotBatcher
from pymirror.paths import coerce_path_spec
from pymirror.state.actions import ReceiveSnapshots


def _received(store: object) -> list[ReceiveSnapshots]:
    return [a for a in store.actions if isinstance(a, ReceiveSnapshots)]  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_burst_produces_two_dispatches(make_store: Callable) -> None:
    store = make_store()
    batcher = SnapshotBatcher(loop=asyncio.get_running_loop(), sync_interval=0.01)

    batcher.deliver(store, coerce_path_spec("a"), 1)
    batcher.deliver(store, coerce_path_spec("b"), 2)
    batcher.deliver(store, coerce_path_spec("c"), 3)

    assert len(_received(store)) == 1
    assert batcher.window_open
    assert batcher.pending == 2

    await asyncio.sleep(0.05)

    dispatched = _received(store)
    assert len(dispatched) == 2
    assert list(dispatched[0].values) == ["a"]
    assert sorted(dispatched[1].values) == ["b", "c"]
    assert not batcher.window_open
    assert store.get_state()["firebaseMirror"].mirror == {"a": 1, "b": 2, "c": 3}


@pytest.mark.asyncio
async def test_later_delivery_for_same_key_wins(make_store: Callable) -> None:
    store = make_store()
    batcher = SnapshotBatcher(loop=asyncio.get_running_loop(), sync_interval=0.01)
    spec = coerce_path_spec("foo")

    batcher.deliver(store, spec, 1)
    batcher.deliver(store, spec, 2)
    batcher.deliver(store, spec, 3)
    await asyncio.sleep(0.05)

    assert len(_received(store)) == 2
    assert store.get_state()["firebaseMirror"].mirror == {"foo": 3}


@pytest.mark.asyncio
async def test_flush_dispatches_once_per_store(make_store: Callable) -> None:
    first, second = make_store(), make_store()
    batcher = SnapshotBatcher(loop=asyncio.get_running_loop(), sync_interval=0.01)

    batcher.deliver(first, coerce_path_spec("a"), 1)
    batcher.deliver(second, coerce_path_spec("b"), 2)
    batcher.deliver(first, coerce_path_spec("c"), 3)
    await asyncio.sleep(0.05)

    assert len(_received(first)) == 2
    assert len(_received(second)) == 1
    assert second.get_state()["firebaseMirror"].mirror == {"b": 2}


@pytest.mark.asyncio
async def test_close_drops_queued_deliveries(make_store: Callable) -> None:
    store = make_store()
    batcher = SnapshotBatcher(loop=asyncio.get_running_loop(), sync_interval=0.01)

    batcher.deliver(store, coerce_path_spec("a"), 1)
    batcher.deliver(store, coerce_path_spec("b"), 2)
    batcher.close()
    await asyncio.sleep(0.05)

    assert len(_received(store)) == 1
    assert batcher.pending == 0


@pytest.mark.asyncio
async def test_new_window_opens_after_flush(make_store: Callable) -> None:
    store = make_store()
    batcher = SnapshotBatcher(loop=asyncio.get_running_loop(), sync_interval=0.01)

    batcher.deliver(store, coerce_path_spec("a"), 1)
    await asyncio.sleep(0.05)
    batcher.deliver(store, coerce_path_spec("a"), 2)

    assert len(_received(store)) == 2
    assert store.get_state()["firebaseMirror"].mirror == {"a": 2}
