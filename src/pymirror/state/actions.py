"""Actions understood by the mirror reducer.

Every state transition of the mirror goes through one of these frozen
models. Action creators in :mod:`pymirror.mirror` build them; only the
reducer in :mod:`pymirror.state.reducer` interprets them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from pymirror._constants import (
    RECEIVE_SNAPSHOTS,
    REHYDRATE,
    SUBSCRIBE_TO_VALUES,
    UNSUBSCRIBE_FROM_VALUES,
)
from pymirror.paths import PathSpec, PathSpecLike, coerce_path_spec


class ReceivedValue(BaseModel):
    """A value delivered for a path spec, as carried by :class:`ReceiveSnapshots`."""

    model_config = ConfigDict(frozen=True)

    path_spec: PathSpec
    value: Any = None


class SubscribeToValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["FIREBASE/SUBSCRIBE_TO_VALUES"] = SUBSCRIBE_TO_VALUES
    paths: tuple[PathSpec, ...] = ()


class UnsubscribeFromValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["FIREBASE/UNSUBSCRIBE_FROM_VALUES"] = UNSUBSCRIBE_FROM_VALUES
    paths: tuple[PathSpec, ...] = ()


class ReceiveSnapshots(BaseModel):
    """A batch of received values keyed by path spec key."""

    model_config = ConfigDict(frozen=True)

    type: Literal["FIREBASE/RECEIVE_SNAPSHOTS"] = RECEIVE_SNAPSHOTS
    values: dict[str, ReceivedValue] = Field(default_factory=dict)
    from_cache: bool = False


class Rehydrate(BaseModel):
    """Restore a dehydrated mirror (see ``get_dehydrated_state``).

    Rehydrating never creates live subscriptions.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["FIREBASE/REHYDRATE"] = REHYDRATE
    data: dict[str, Any] = Field(default_factory=dict)


MirrorAction = SubscribeToValues | UnsubscribeFromValues | ReceiveSnapshots | Rehydrate


def receive_snapshots(
    deliveries: Iterable[tuple[PathSpecLike, Any]],
    *,
    from_cache: bool = False,
) -> ReceiveSnapshots:
    """Build a :class:`ReceiveSnapshots` from ``(path_spec, value)`` pairs.

    Later deliveries for the same key replace earlier ones.
    """
    values: dict[str, ReceivedValue] = {}
    for raw_spec, value in deliveries:
        spec = coerce_path_spec(raw_spec)
        values[spec.key] = ReceivedValue(path_spec=spec, value=value)
    return ReceiveSnapshots(values=values, from_cache=from_cache)


def rehydrate(data: Mapping[str, Any]) -> Rehydrate:
    return Rehydrate(data=dict(data))
