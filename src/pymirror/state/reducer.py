"""Subscription registry and mirror reducer.

The reducer is a pure function of ``(state, action)`` apart from reading the
injected clock. It never mutates its input: every transition returns a new
:class:`MirrorState`, so readers holding a previous snapshot never observe a
partially applied batch.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pymirror.paths import PlainPath, QueryPath, join_path, normalize_path
from pymirror.state.actions import (
    ReceiveSnapshots,
    ReceivedValue,
    Rehydrate,
    SubscribeToValues,
    UnsubscribeFromValues,
)
from pymirror.storage import DictMirrorStorage, MirrorStorage


class SubscriptionInfo(BaseModel):
    """Registry entry for one path spec key.

    ``time`` is set while a live listener exists; ``last_update_time`` is set
    once any value for the key has been received.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    time: float | None = None
    last_update_time: float | None = None


class MirrorState(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    subscriptions: dict[str, SubscriptionInfo] = Field(default_factory=dict)
    mirror: Any = None


def _child_items(value: Any) -> list[tuple[str, Any]]:
    if isinstance(value, Mapping):
        return [(str(k), v) for k, v in value.items()]
    if isinstance(value, list):
        return [(str(i), v) for i, v in enumerate(value) if v is not None]
    return []


def expand_received(values: Mapping[str, ReceivedValue]) -> tuple[dict[str, Any], list[str]]:
    """Translate a received batch into mirror writes and registry keys to stamp.

    Plain paths are written as-is. Query results are written child by child
    under the query's base path so they merge with siblings already mirrored,
    and each child path is stamped as an individually received value.
    """
    writes: dict[str, Any] = {}
    stamped: list[str] = []
    for key, received in values.items():
        spec = received.path_spec
        stamped.append(key)
        if isinstance(spec, PlainPath):
            writes[normalize_path(spec.path)] = received.value
        elif isinstance(spec, QueryPath):
            for child, child_value in _child_items(received.value):
                child_path = join_path(spec.base_path, child)
                writes[child_path] = child_value
                stamped.append(child_path)
    return writes, stamped


class MirrorReducer:
    """Reducer for the ``{subscriptions, mirror}`` state slice."""

    def __init__(
        self,
        storage_api: MirrorStorage[Any] | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage_api or DictMirrorStorage()
        self._clock = clock

    @property
    def storage_api(self) -> MirrorStorage[Any]:
        return self._storage

    def initial_state(self) -> MirrorState:
        return MirrorState(subscriptions={}, mirror=self._storage.get_initial_mirror())

    def __call__(self, state: MirrorState | None, action: Any) -> MirrorState:
        if state is None:
            state = self.initial_state()

        if isinstance(action, SubscribeToValues):
            return self._subscribe(state, action)
        if isinstance(action, UnsubscribeFromValues):
            return self._unsubscribe(state, action)
        if isinstance(action, ReceiveSnapshots):
            return self._receive(state, action)
        if isinstance(action, Rehydrate):
            return self._rehydrate(state, action)
        return state

    def _subscribe(self, state: MirrorState, action: SubscribeToValues) -> MirrorState:
        if not action.paths:
            return state
        now = self._clock()
        subscriptions = dict(state.subscriptions)
        for spec in action.paths:
            existing = subscriptions.get(spec.key) or SubscriptionInfo()
            subscriptions[spec.key] = existing.model_copy(update={"time": now})
        return state.model_copy(update={"subscriptions": subscriptions})

    def _unsubscribe(self, state: MirrorState, action: UnsubscribeFromValues) -> MirrorState:
        keys = {spec.key for spec in action.paths} & state.subscriptions.keys()
        if not keys:
            return state
        subscriptions = {k: v for k, v in state.subscriptions.items() if k not in keys}
        return state.model_copy(update={"subscriptions": subscriptions})

    def _receive(self, state: MirrorState, action: ReceiveSnapshots) -> MirrorState:
        if not action.values:
            return state
        now = self._clock()
        writes, stamped = expand_received(action.values)

        subscriptions = dict(state.subscriptions)
        for key in stamped:
            existing = subscriptions.get(key) or SubscriptionInfo()
            subscriptions[key] = existing.model_copy(update={"last_update_time": now})

        mirror = self._storage.set_values(state.mirror, writes) if writes else state.mirror
        return state.model_copy(update={"subscriptions": subscriptions, "mirror": mirror})

    def _rehydrate(self, state: MirrorState, action: Rehydrate) -> MirrorState:
        data = action.data
        subscriptions = dict(state.subscriptions)
        restored_subscriptions = data.get("subscriptions") or {}
        for key, raw_info in restored_subscriptions.items():
            restored = SubscriptionInfo.model_validate(raw_info or {})
            existing = subscriptions.get(key)
            if existing is None:
                # Rehydrated entries never count as live subscriptions.
                subscriptions[key] = restored.model_copy(update={"time": None})
            elif existing.last_update_time is None:
                subscriptions[key] = existing.model_copy(update={"last_update_time": restored.last_update_time})

        mirror = state.mirror
        restored_mirror = data.get("mirror")
        if isinstance(restored_mirror, Mapping) and restored_mirror:
            mirror = self._storage.set_values(mirror, dict(restored_mirror))
        return state.model_copy(update={"subscriptions": subscriptions, "mirror": mirror})
