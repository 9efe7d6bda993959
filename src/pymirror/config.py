"""Mirror configuration for pymirror."""

from __future__ import annotations

import dataclasses
import os
import time
from collections.abc import Callable, Mapping
from typing import Any

from pymirror._constants import (
    DEFAULT_CACHE_PREFIX,
    DEFAULT_MAX_FETCH_ROUNDS,
    DEFAULT_MOUNT_KEY,
    DEFAULT_SYNC_INTERVAL,
)
from pymirror.exceptions import MirrorConfigError
from pymirror.ingestion.cache import KeyValueStorage, MemoryKeyValueStorage
from pymirror.storage import DictMirrorStorage, MirrorStorage


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def default_get_mirror_state(state: Any) -> Any:
    """Return the mirror slice mounted under ``"firebaseMirror"``."""
    if not isinstance(state, Mapping) or state.get(DEFAULT_MOUNT_KEY) is None:
        raise MirrorConfigError(
            f"pymirror's reducer must be mounted with combine_reducers() under the '{DEFAULT_MOUNT_KEY}' key, "
            "or a custom get_mirror_state must be configured"
        )
    return state[DEFAULT_MOUNT_KEY]


@dataclasses.dataclass(frozen=True)
class PersistConfig:
    """Where received values are cached between runs.

    Parameters
    ----------
    storage : KeyValueStorage
        Backend implementing ``get_item`` / ``set_item``. ``get_item`` may
        return an awaitable. Defaults to a process-local in-memory store.
    storage_prefix : str
        Prefix prepended to every path spec key.
    """

    storage: KeyValueStorage = dataclasses.field(default_factory=MemoryKeyValueStorage)
    storage_prefix: str = DEFAULT_CACHE_PREFIX


@dataclasses.dataclass(frozen=True)
class MirrorConfig:
    """Mirror configuration.

    Parameters
    ----------
    get_firebase : callable or None
        Returns an object whose ``database()`` method yields the remote
        database. Required before any listener is opened or fetch issued.
    get_mirror_state : callable
        Maps the root state to the mirror slice. The default expects a
        mapping with the slice under ``"firebaseMirror"``.
    persist_to_storage : PersistConfig or None
        Enables cache hydration on subscribe and write-back of received values.
    sync_interval : float
        Seconds during which bursts of deliveries are coalesced.
    storage_api : MirrorStorage
        Tree representation used for the mirror.
    clock : callable
        Source of registry timestamps (epoch seconds).
    max_fetch_rounds : int
        Upper bound on rounds of a convergence fetch.
    """

    get_firebase: Callable[[], Any] | None = None
    get_mirror_state: Callable[[Any], Any] = default_get_mirror_state
    persist_to_storage: PersistConfig | None = None
    sync_interval: float = DEFAULT_SYNC_INTERVAL
    storage_api: MirrorStorage[Any] = dataclasses.field(default_factory=DictMirrorStorage)
    clock: Callable[[], float] = time.time
    max_fetch_rounds: int = DEFAULT_MAX_FETCH_ROUNDS

    def __post_init__(self) -> None:
        if self.sync_interval < 0:
            raise MirrorConfigError(f"sync_interval must be >= 0, got {self.sync_interval}")
        if self.max_fetch_rounds < 1:
            raise MirrorConfigError(f"max_fetch_rounds must be >= 1, got {self.max_fetch_rounds}")

    @classmethod
    def from_env(cls, **overrides: Any) -> MirrorConfig:
        """Create configuration from environment variables.

        Reads ``MIRROR_SYNC_INTERVAL``, ``MIRROR_MAX_FETCH_ROUNDS``,
        ``MIRROR_PERSIST`` and ``MIRROR_STORAGE_PREFIX``. Explicit keyword
        arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        interval_env = env.get("MIRROR_SYNC_INTERVAL")
        if interval_env is not None and "sync_interval" not in overrides:
            try:
                config_kwargs["sync_interval"] = float(interval_env)
            except ValueError as exc:
                raise MirrorConfigError(f"MIRROR_SYNC_INTERVAL is not a number: {interval_env!r}") from exc

        rounds_env = env.get("MIRROR_MAX_FETCH_ROUNDS")
        if rounds_env is not None and "max_fetch_rounds" not in overrides:
            try:
                config_kwargs["max_fetch_rounds"] = int(rounds_env)
            except ValueError as exc:
                raise MirrorConfigError(f"MIRROR_MAX_FETCH_ROUNDS is not an integer: {rounds_env!r}") from exc

        if "persist_to_storage" not in overrides and _env_bool(env.get("MIRROR_PERSIST"), False):
            prefix = env.get("MIRROR_STORAGE_PREFIX")
            config_kwargs["persist_to_storage"] = (
                PersistConfig(storage_prefix=prefix) if prefix is not None else PersistConfig()
            )

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
