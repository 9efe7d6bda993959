from __future__ import annotations

from collections.abc import Callable

import pytest

from pymirror import FirebaseMirror, MirrorConfig, MirrorError, Rehydrate
from pymirror.state.actions import receive_snapshots


@pytest.mark.asyncio
async def test_dehydrate_then_rehydrate_restores_values_not_listeners(make_mirror: Callable, database) -> None:
    mirror, store = make_mirror()
    mirror.subscribe_to_values(store, ["todos"])
    database.emit("todos", {"1": "a"})
    dehydrated = mirror.get_dehydrated_state(store.get_state())

    _other, restored = make_mirror()
    action = mirror.rehydrate(dehydrated)
    restored.dispatch(action)

    state = restored.get_state()
    assert isinstance(action, Rehydrate)
    assert mirror.get_value_at_path(state, "todos/1") == "a"
    assert mirror.has_received_value(state, "todos/1")
    assert not mirror.is_subscribed_to_value(state, "todos")


def test_initial_state_and_reducer_wiring(make_mirror: Callable) -> None:
    mirror, store = make_mirror()

    assert store.get_state()["firebaseMirror"] == mirror.initial_state()

    store.dispatch(receive_snapshots([("a/b", 1)]))
    assert mirror.get_keys_at_path(store.get_state(), "a") == ["b"]


def test_actions_need_a_running_loop() -> None:
    mirror = FirebaseMirror(MirrorConfig())

    with pytest.raises(MirrorError, match="running event loop"):
        mirror.fetch_values(object(), ["a"])  # type: ignore[arg-type]
