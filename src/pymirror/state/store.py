"""Minimal in-memory state store.

The mirror only needs a store that can ``dispatch`` actions and hand back the
current root state. :class:`StateStore` is that store; applications that
already run their own store can use it instead as long as it satisfies
:class:`Store`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol

Reducer = Callable[[Any, Any], Any]
Listener = Callable[[], None]


class Store(Protocol):
    def dispatch(self, action: Any) -> Any: ...

    def get_state(self) -> Any: ...


def combine_reducers(reducers: Mapping[str, Reducer]) -> Reducer:
    """Combine slice reducers into a reducer over a ``dict`` root state.

    The root dict is only replaced when at least one slice changed, so
    identity comparisons on the root stay meaningful.
    """
    slices = dict(reducers)

    def reduce(state: Mapping[str, Any] | None, action: Any) -> dict[str, Any]:
        previous: Mapping[str, Any] = state or {}
        changed = False
        next_state = dict(previous)
        for key, reducer in slices.items():
            before = previous.get(key)
            after = reducer(before, action)
            if after is not before:
                changed = True
            next_state[key] = after
        if not changed and isinstance(state, dict):
            return state
        return next_state

    return reduce


class StateStore:
    """Holds the root state and applies actions through a reducer.

    Every dispatch replaces the root state with the reducer's result; the
    previous root is never modified.
    """

    def __init__(self, reducer: Reducer, initial_state: Any = None) -> None:
        self._reducer = reducer
        self._state = reducer(initial_state, None)
        self._listeners: list[Listener] = []
        self._dispatching = False

    def get_state(self) -> Any:
        return self._state

    def dispatch(self, action: Any) -> Any:
        if self._dispatching:
            raise RuntimeError("Reducers may not dispatch actions")
        self._dispatching = True
        try:
            self._state = self._reducer(self._state, action)
        finally:
            self._dispatching = False

        for listener in list(self._listeners):
            listener()
        return action

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* after every dispatch; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
