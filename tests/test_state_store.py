from __future__ import annotations

from typing import Any

import pytest

from pymirror.state.store import StateStore, combine_reducers


def _counter(state: int | None, action: Any) -> int:
    if state is None:
        state = 0
    if action == "inc":
        return state + 1
    return state


def test_initial_state_comes_from_reducer() -> None:
    store = StateStore(combine_reducers({"count": _counter}))

    assert store.get_state() == {"count": 0}


def test_dispatch_replaces_root_state_without_mutating_previous() -> None:
    store = StateStore(combine_reducers({"count": _counter}))
    before = store.get_state()

    store.dispatch("inc")

    assert store.get_state() == {"count": 1}
    assert before == {"count": 0}


def test_unchanged_slices_keep_root_identity() -> None:
    store = StateStore(combine_reducers({"count": _counter}))
    before = store.get_state()

    store.dispatch("unknown")

    assert store.get_state() is before


def test_listeners_run_after_dispatch_and_can_unsubscribe() -> None:
    store = StateStore(combine_reducers({"count": _counter}))
    seen: list[int] = []
    unsubscribe = store.subscribe(lambda: seen.append(store.get_state()["count"]))

    store.dispatch("inc")
    unsubscribe()
    store.dispatch("inc")

    assert seen == [1]


def test_reducer_may_not_dispatch() -> None:
    holder: dict[str, StateStore] = {}

    def reentrant(state: int | None, action: Any) -> int:
        if action == "boom":
            holder["store"].dispatch("inc")
        return state or 0

    store = StateStore(combine_reducers({"count": reentrant}))
    holder["store"] = store

    with pytest.raises(RuntimeError):
        store.dispatch("boom")
