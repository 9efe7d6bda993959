"""Remote listener lifecycle: subscribe, unsubscribe and one-shot fetches."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pymirror._batching import SnapshotBatcher, run_on_loop
from pymirror._database import VALUE_EVENT, Database, Reference, Snapshot, build_query
from pymirror.paths import PlainPath, QueryPath
from pymirror.state.actions import SubscribeToValues, UnsubscribeFromValues, receive_snapshots
from pymirror.state.selectors import MirrorSelectors
from pymirror.state.store import Store

PathSpecs = Sequence[PlainPath | QueryPath]
CacheHook = Callable[[Store, list[PlainPath | QueryPath]], Any]


@dataclass(frozen=True)
class _Attachment:
    store: Store
    spec: PlainPath | QueryPath
    ref: Reference


class ListenerManager:
    """Opens and closes persistent value listeners, deduplicated via the registry.

    Each configured mirror owns one manager; the references it attached are
    remembered per store and path spec key so they can be detached exactly.
    """

    def __init__(
        self,
        *,
        get_database: Callable[[], Database],
        selectors: MirrorSelectors,
        batcher: Callable[[], SnapshotBatcher],
        before_subscribe: CacheHook | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._get_database = get_database
        self._selectors = selectors
        self._batcher = batcher
        self._before_subscribe = before_subscribe
        self._logger = logger or logging.getLogger(__name__)
        self._attached: dict[tuple[int, str], _Attachment] = {}

    @property
    def attached_keys(self) -> frozenset[str]:
        return frozenset(key for _store_id, key in self._attached)

    def subscribe(self, store: Store, specs: PathSpecs) -> list[PlainPath | QueryPath]:
        """Attach listeners for every spec not already covered.

        Returns the specs that were newly subscribed. Nothing is dispatched
        and no listener is opened when every spec is already covered.
        """
        state = store.get_state()
        fresh = [spec for spec in specs if not self._selectors.is_subscribed_to_value(state, spec)]
        if not fresh:
            return []

        database = self._get_database()
        batcher = self._batcher()
        if self._before_subscribe is not None:
            self._before_subscribe(store, fresh)

        store.dispatch(SubscribeToValues(paths=tuple(fresh)))

        for spec in fresh:
            ref = build_query(database, spec)
            ref.on(VALUE_EVENT, self._value_callback(batcher, store, spec))
            self._attached[(id(store), spec.key)] = _Attachment(store=store, spec=spec, ref=ref)
            self._logger.debug("Attached value listener for %s", spec.key)
        return fresh

    @staticmethod
    def _value_callback(
        batcher: SnapshotBatcher,
        store: Store,
        spec: PlainPath | QueryPath,
    ) -> Callable[[Snapshot], None]:
        def on_value(snapshot: Snapshot) -> None:
            batcher.deliver(store, spec, snapshot.val())

        return on_value

    def unsubscribe(self, store: Store, specs: PathSpecs) -> list[PlainPath | QueryPath]:
        """Detach listeners for specs with a live registry entry of their own.

        Specs only covered through an ancestor are left alone.
        """
        state = store.get_state()
        live = [spec for spec in specs if self._selectors.has_live_subscription(state, spec)]
        if not live:
            return []

        for spec in live:
            attachment = self._attached.pop((id(store), spec.key), None)
            ref = attachment.ref if attachment is not None else self._get_database().ref(spec.path)
            ref.off(VALUE_EVENT)
            self._logger.debug("Detached value listener for %s", spec.key)

        store.dispatch(UnsubscribeFromValues(paths=tuple(live)))
        return live

    def fetch(
        self,
        store: Store,
        specs: PathSpecs,
        *,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[], Any] | None = None,
    ) -> asyncio.Future[None]:
        """Read every spec once, dispatching each value as soon as it arrives.

        The returned future resolves (and *callback* runs) once every spec
        has reported.
        """
        done: asyncio.Future[None] = loop.create_future()
        remaining = {spec.key for spec in specs}

        def finish() -> None:
            if callback is not None:
                callback()
            if not done.done():
                done.set_result(None)

        if not remaining:
            finish()
            return done

        def complete(spec: PlainPath | QueryPath, value: Any) -> None:
            if spec.key not in remaining:
                return
            store.dispatch(receive_snapshots([(spec, value)]))
            remaining.discard(spec.key)
            if not remaining:
                finish()

        def once_callback(spec: PlainPath | QueryPath) -> Callable[[Snapshot], None]:
            def on_value(snapshot: Snapshot) -> None:
                run_on_loop(loop, complete, spec, snapshot.val())

            return on_value

        database = self._get_database()
        for spec in specs:
            build_query(database, spec).once(VALUE_EVENT, once_callback(spec))
        return done

    def detach_all(self) -> None:
        """Detach every listener this manager opened and drop their registry entries.

        Stores are told through ``UnsubscribeFromValues`` so a later subscribe
        to the same paths attaches fresh listeners.
        """
        attached, self._attached = self._attached, {}
        by_store: dict[int, tuple[Store, list[PlainPath | QueryPath]]] = {}
        for (store_id, key), attachment in attached.items():
            try:
                attachment.ref.off(VALUE_EVENT)
            except Exception:
                self._logger.debug("Detaching listener for %s failed", key, exc_info=True)
            by_store.setdefault(store_id, (attachment.store, []))[1].append(attachment.spec)

        for store, specs in by_store.values():
            store.dispatch(UnsubscribeFromValues(paths=tuple(specs)))
            self._logger.debug("Dropped %d registry entries on close", len(specs))
