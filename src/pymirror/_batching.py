"""Coalescing dispatcher for live snapshot deliveries.

The first delivery after an idle period is dispatched immediately. Any
delivery that arrives while the sync window is open is queued and dispatched
together with the rest of the queue when the window closes, so a burst
produces at most one ``ReceiveSnapshots`` per sync interval.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pymirror.paths import PlainPath, QueryPath
from pymirror.state.actions import receive_snapshots
from pymirror.state.store import Store


def run_on_loop(loop: asyncio.AbstractEventLoop, fn: Callable[..., Any], *args: Any) -> None:
    """Run *fn* now when called on *loop*, otherwise hand it to the loop thread.

    Database SDKs commonly invoke listener callbacks from their own threads.
    """
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        fn(*args)
    else:
        loop.call_soon_threadsafe(fn, *args)


@dataclass(frozen=True)
class _Delivery:
    store: Store
    spec: PlainPath | QueryPath
    value: Any


class SnapshotBatcher:
    """Per-mirror coalescing queue and timer.

    Only one flush is ever scheduled at a time. Queued deliveries may belong
    to different stores; a flush dispatches one action per store, in the
    order each store first appears in the queue.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        sync_interval: float,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._sync_interval = sync_interval
        self._logger = logger or logging.getLogger(__name__)
        self._queue: list[_Delivery] = []
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def window_open(self) -> bool:
        """Whether deliveries are currently being coalesced."""
        return self._timer is not None

    @property
    def pending(self) -> int:
        return len(self._queue)

    def deliver(self, store: Store, spec: PlainPath | QueryPath, value: Any) -> None:
        """Accept a snapshot value from a listener callback (any thread)."""
        run_on_loop(self._loop, self._receive, _Delivery(store=store, spec=spec, value=value))

    def _receive(self, delivery: _Delivery) -> None:
        if self._closed:
            return
        if self._timer is not None:
            self._queue.append(delivery)
            return
        self._timer = self._loop.call_later(self._sync_interval, self._flush)
        delivery.store.dispatch(receive_snapshots([(delivery.spec, delivery.value)]))

    def _flush(self) -> None:
        queue, self._queue = self._queue, []
        self._timer = None
        if not queue:
            return

        by_store: dict[int, tuple[Store, list[_Delivery]]] = {}
        for delivery in queue:
            by_store.setdefault(id(delivery.store), (delivery.store, []))[1].append(delivery)

        self._logger.debug("Flushing %d coalesced snapshot(s)", len(queue))
        for store, deliveries in by_store.values():
            store.dispatch(receive_snapshots((d.spec, d.value) for d in deliveries))

    def close(self) -> None:
        """Cancel the open window and drop anything still queued."""
        self._closed = True
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()
        if self._queue:
            self._logger.debug("Dropping %d queued snapshot(s) on close", len(self._queue))
        self._queue = []
