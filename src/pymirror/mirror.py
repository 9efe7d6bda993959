"""Configured mirror instance: reducer, selectors and action creators."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pymirror._batching import SnapshotBatcher
from pymirror._database import Database
from pymirror._listeners import ListenerManager
from pymirror.config import MirrorConfig, PersistConfig
from pymirror.exceptions import MirrorConfigError, MirrorError
from pymirror.ingestion.cache import CacheLoader, CacheWriter
from pymirror.paths import PathSpecLike, PlainPath, QueryPath, coerce_path_spec, coerce_path_specs
from pymirror.state.actions import Rehydrate, rehydrate
from pymirror.state.reducer import MirrorReducer, MirrorState
from pymirror.state.selectors import MirrorSelectors
from pymirror.state.store import Store

_logger = logging.getLogger(__name__)

_USE_CONFIG: Any = object()


class FirebaseMirror:
    """A configured mirror.

    Each instance owns its own coalescing window, so independently
    configured mirrors never share a timer. Action creators must be called
    from the event loop that should receive deliveries.

    Usage::

        mirror = FirebaseMirror(MirrorConfig(get_firebase=lambda: app))
        store = StateStore(combine_reducers({"firebaseMirror": mirror.reducer}))
        mirror.subscribe_to_values(store, ["/todos", {"path": "/feed", "filter": {"limitToLast": 20}}])
    """

    def __init__(self, config: MirrorConfig | None = None) -> None:
        self._config = config or MirrorConfig()
        self._state_reducer = MirrorReducer(self._config.storage_api, clock=self._config.clock)

        persist = self._config.persist_to_storage
        self._cache_writer: CacheWriter | None = None
        reducer: Callable[[Any, Any], Any] = self._state_reducer
        if persist is not None:
            self._cache_writer = CacheWriter(storage=persist.storage, storage_prefix=persist.storage_prefix)
            reducer = self._cache_writer.wrap(reducer)
        self._reducer = reducer

        self._selectors = MirrorSelectors(self._config.get_mirror_state, self._config.storage_api)
        self._batcher: SnapshotBatcher | None = None
        self._listeners = ListenerManager(
            get_database=self._require_database,
            selectors=self._selectors,
            batcher=self._require_batcher,
            before_subscribe=self._hydrate if persist is not None else None,
            logger=_logger,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FirebaseMirror:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        """Detach every listener this mirror opened and cancel pending batches."""
        self._listeners.detach_all()
        if self._batcher is not None:
            self._batcher.close()
            self._batcher = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def config(self) -> MirrorConfig:
        return self._config

    @property
    def reducer(self) -> Callable[[Any, Any], Any]:
        """Reducer for the mirror slice, including cache write-back when enabled."""
        return self._reducer

    @property
    def selectors(self) -> MirrorSelectors:
        return self._selectors

    def initial_state(self) -> MirrorState:
        return self._state_reducer.initial_state()

    @staticmethod
    def _require_loop() -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError as exc:
            raise MirrorError("Mirror actions must be called from a running event loop") from exc

    def _require_database(self) -> Database:
        if self._config.get_firebase is None:
            raise MirrorConfigError("MirrorConfig.get_firebase must be set before listening to or fetching values")
        return self._config.get_firebase().database()

    def _require_batcher(self) -> SnapshotBatcher:
        if self._batcher is None:
            self._batcher = SnapshotBatcher(
                loop=self._require_loop(),
                sync_interval=self._config.sync_interval,
                logger=_logger,
            )
        return self._batcher

    def _hydrate(self, store: Store, specs: list[PlainPath | QueryPath]) -> None:
        self.load_values_from_cache(store, specs)

    # ------------------------------------------------------------------
    # Action creators
    # ------------------------------------------------------------------

    def subscribe_to_values(self, store: Store, path_specs: Iterable[PathSpecLike]) -> list[PlainPath | QueryPath]:
        """Listen for ``value`` changes at every path spec not already covered.

        Returns the path specs that were newly subscribed.
        """
        return self._listeners.subscribe(store, coerce_path_specs(path_specs))

    def unsubscribe_from_values(
        self,
        store: Store,
        path_specs: Iterable[PathSpecLike],
    ) -> list[PlainPath | QueryPath]:
        """Stop listening at path specs that hold a live subscription of their own.

        Mirrored values are kept.
        """
        return self._listeners.unsubscribe(store, coerce_path_specs(path_specs))

    def fetch_values(
        self,
        store: Store,
        path_specs: Iterable[PathSpecLike],
        callback: Callable[[], Any] | None = None,
    ) -> asyncio.Future[None]:
        """Read each path spec once; the future resolves once all have arrived."""
        return self._listeners.fetch(
            store,
            coerce_path_specs(path_specs),
            loop=self._require_loop(),
            callback=callback,
        )

    def load_values_from_cache(
        self,
        store: Store,
        path_specs: Iterable[PathSpecLike],
        persist: PersistConfig | None = _USE_CONFIG,
    ) -> list[asyncio.Future[Any]]:
        """Warm the mirror from key-value storage.

        Uses the configured persistence unless *persist* is given; does
        nothing when neither is set. Returns one future per input path spec,
        in input order; duplicates of the same key share one read.
        """
        if persist is _USE_CONFIG:
            persist = self._config.persist_to_storage
        if persist is None:
            return []
        loader = CacheLoader(
            storage=persist.storage,
            storage_prefix=persist.storage_prefix,
            sync_interval=self._config.sync_interval,
        )
        requested = [coerce_path_spec(value) for value in path_specs]
        unique = coerce_path_specs(requested)
        futures = loader.load(store, unique, loop=self._require_loop())
        by_key = {spec.key: future for spec, future in zip(unique, futures)}
        return [by_key[spec.key] for spec in requested]

    @staticmethod
    def rehydrate(data: Mapping[str, Any]) -> Rehydrate:
        """Action restoring a dehydrated mirror. Creates no subscriptions."""
        return rehydrate(data)

    # ------------------------------------------------------------------
    # Selectors
    # ------------------------------------------------------------------

    def is_subscribed_to_value(self, state: Any, path_spec: PathSpecLike) -> bool:
        return self._selectors.is_subscribed_to_value(state, path_spec)

    def has_received_value(self, state: Any, path_spec: PathSpecLike) -> bool:
        return self._selectors.has_received_value(state, path_spec)

    def get_mirror(self, state: Any) -> Any:
        return self._selectors.get_mirror(state)

    def get_value_at_path(self, state: Any, path: str) -> Any:
        return self._selectors.get_value_at_path(state, path)

    def get_keys_at_path(self, state: Any, path: str) -> list[str]:
        return self._selectors.get_keys_at_path(state, path)

    def get_dehydrated_state(self, state: Any) -> dict[str, Any]:
        return self._selectors.get_dehydrated_state(state)
