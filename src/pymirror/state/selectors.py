"""Selectors over the mirror state slice.

Coverage lookups walk a plain path's ancestors, which is too slow to repeat
on every read. :class:`_RegistryLookup` memoizes the walk for one
``subscriptions`` mapping; :class:`MirrorSelectors` keeps the lookup for the
most recent mapping and rebuilds it whenever the mapping object changes.
Reducers never mutate a mapping in place, so identity is a sound cache key.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any

from pymirror.exceptions import MirrorConfigError
from pymirror.paths import PathSpecLike, PlainPath, coerce_path_spec, parent_paths
from pymirror.state.reducer import MirrorState, SubscriptionInfo
from pymirror.storage import MirrorStorage


class _RegistryLookup:
    def __init__(self, subscriptions: dict[str, SubscriptionInfo]) -> None:
        self.subscriptions = subscriptions
        self.is_subscribed = functools.lru_cache(maxsize=None)(self._is_subscribed)
        self.has_received = functools.lru_cache(maxsize=None)(self._has_received)

    def _first_match(self, key: str, plain: bool, predicate: Callable[[SubscriptionInfo], bool]) -> bool:
        if not plain:
            info = self.subscriptions.get(key)
            return info is not None and predicate(info)
        for candidate in parent_paths(key):
            info = self.subscriptions.get(candidate)
            if info is not None and predicate(info):
                return True
        return False

    def _is_subscribed(self, key: str, plain: bool) -> bool:
        return self._first_match(key, plain, lambda info: info.time is not None)

    def _has_received(self, key: str, plain: bool) -> bool:
        return self._first_match(key, plain, lambda info: info.last_update_time is not None)


class MirrorSelectors:
    """Read access to the mirror state mounted somewhere in the root state."""

    def __init__(
        self,
        get_mirror_state: Callable[[Any], MirrorState],
        storage_api: MirrorStorage[Any],
    ) -> None:
        self._get_mirror_state = get_mirror_state
        self._storage = storage_api
        self._lookup: _RegistryLookup | None = None

    def get_mirror_state(self, state: Any) -> MirrorState:
        mirror_state = self._get_mirror_state(state)
        if not isinstance(mirror_state, MirrorState):
            raise MirrorConfigError(
                f"get_mirror_state returned {type(mirror_state).__name__}; "
                "the mirror reducer does not appear to be mounted where the config expects it"
            )
        return mirror_state

    def _registry(self, state: Any) -> _RegistryLookup:
        subscriptions = self.get_mirror_state(state).subscriptions
        lookup = self._lookup
        if lookup is None or lookup.subscriptions is not subscriptions:
            lookup = _RegistryLookup(subscriptions)
            self._lookup = lookup
        return lookup

    def is_subscribed_to_value(self, state: Any, path_spec: PathSpecLike) -> bool:
        spec = coerce_path_spec(path_spec)
        return self._registry(state).is_subscribed(spec.key, isinstance(spec, PlainPath))

    def has_live_subscription(self, state: Any, path_spec: PathSpecLike) -> bool:
        """Exact-key check, without the ancestor walk."""
        spec = coerce_path_spec(path_spec)
        info = self.get_mirror_state(state).subscriptions.get(spec.key)
        return info is not None and info.time is not None

    def has_received_value(self, state: Any, path_spec: PathSpecLike) -> bool:
        spec = coerce_path_spec(path_spec)
        return self._registry(state).has_received(spec.key, isinstance(spec, PlainPath))

    def get_mirror(self, state: Any) -> Any:
        return self.get_mirror_state(state).mirror

    def get_value_at_path(self, state: Any, path: str) -> Any:
        if not path:
            raise MirrorConfigError("You must specify a path from which to get a value")
        return self._storage.get_value_at_path(self.get_mirror(state), path)

    def get_keys_at_path(self, state: Any, path: str) -> list[str]:
        if not path:
            raise MirrorConfigError("You must specify a path from which to get keys")
        return self._storage.get_keys_at_path(self.get_mirror(state), path)

    def get_dehydrated_state(self, state: Any) -> dict[str, Any]:
        """Serializable copy of the mirror, suitable for :func:`~pymirror.state.actions.rehydrate`.

        Subscription times are dropped so a rehydrated state never claims live
        listeners it does not have.
        """
        mirror_state = self.get_mirror_state(state)
        return {
            "mirror": self._storage.get_value_at_path(mirror_state.mirror, "") or {},
            "subscriptions": {
                key: info.model_dump(by_alias=True, exclude={"time"}, exclude_none=True)
                for key, info in mirror_state.subscriptions.items()
            },
        }
