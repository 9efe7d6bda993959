"""Key-value cache hydration and write-back.

Two halves share the same storage naming (``prefix + path spec key``):

- :class:`CacheLoader` warms the mirror from storage before live data arrives.
  Storage reads may be synchronous or awaitable; results are staged and
  dispatched as ``ReceiveSnapshots(from_cache=True)`` in as few batches as
  the backend allows.
- :class:`CacheWriter` wraps a reducer and writes every freshly received
  (non-cached) value back to storage.

A missing, empty or unparsable cache entry is a cache miss. It is logged at
DEBUG level and never surfaces to the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

from pymirror.paths import PlainPath, QueryPath
from pymirror.state.actions import ReceivedValue, ReceiveSnapshots
from pymirror.state.store import Store

_logger = logging.getLogger(__name__)

_MISS = object()


class KeyValueStorage(Protocol):
    """Storage backend; ``get_item`` may return a value or an awaitable."""

    def get_item(self, key: str) -> str | None | Awaitable[str | None]: ...

    def set_item(self, key: str, value: str) -> Any: ...


class MemoryKeyValueStorage:
    """Process-local storage backend."""

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def __len__(self) -> int:
        return len(self._items)


def _parse_cached(key: str, raw: Any) -> Any:
    if not raw:
        return _MISS
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        _logger.debug("Ignoring unparsable cache entry for %s", key)
        return _MISS
    if value is None:
        return _MISS
    return value


class _CacheBatch:
    """Staging buffer for one ``load`` call.

    While reads are still outstanding, staged values are flushed at most one
    sync interval after the first of them was staged. Once every read has
    reported, whatever is staged is flushed immediately and any pending
    flush timer is cancelled.
    """

    def __init__(
        self,
        *,
        store: Store,
        loop: asyncio.AbstractEventLoop,
        sync_interval: float,
        total: int,
    ) -> None:
        self._store = store
        self._loop = loop
        self._sync_interval = sync_interval
        self._total = total
        self._received = 0
        self._staged: dict[str, ReceivedValue] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._collecting_sync = True

    def receive(self, spec: PlainPath | QueryPath, raw: Any) -> Any:
        self._received += 1
        value = _parse_cached(spec.key, raw)
        if value is not _MISS:
            self._staged[spec.key] = ReceivedValue(path_spec=spec, value=value)
        self._schedule()
        return None if value is _MISS else value

    def end_sync_reads(self) -> None:
        self._collecting_sync = False
        self._schedule()

    def _schedule(self) -> None:
        if self._collecting_sync:
            return
        if self._received >= self._total:
            self._flush()
            return
        if self._staged and self._timer is None:
            self._timer = self._loop.call_later(self._sync_interval, self._flush)

    def _flush(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()
        if not self._staged:
            return
        values, self._staged = self._staged, {}
        _logger.debug("Dispatching %d cached value(s)", len(values))
        self._store.dispatch(ReceiveSnapshots(values=values, from_cache=True))


class CacheLoader:
    def __init__(self, *, storage: KeyValueStorage, storage_prefix: str, sync_interval: float) -> None:
        self._storage = storage
        self._prefix = storage_prefix
        self._sync_interval = sync_interval

    def load(
        self,
        store: Store,
        specs: Sequence[PlainPath | QueryPath],
        *,
        loop: asyncio.AbstractEventLoop,
    ) -> list[asyncio.Future[Any]]:
        """Read *specs* from storage and dispatch what was found.

        Returns one future per spec, resolving to the cached value or ``None``.
        """
        if not specs:
            return []

        batch = _CacheBatch(store=store, loop=loop, sync_interval=self._sync_interval, total=len(specs))
        results: list[asyncio.Future[Any] | Any] = []
        for spec in specs:
            key = self._prefix + spec.key
            try:
                raw = self._storage.get_item(key)
            except Exception:
                _logger.debug("Cache read failed for %s", key, exc_info=True)
                raw = None

            if inspect.isawaitable(raw):
                results.append(loop.create_task(self._read_async(batch, spec, raw)))
            else:
                results.append(batch.receive(spec, raw))
        batch.end_sync_reads()

        futures: list[asyncio.Future[Any]] = []
        for result in results:
            if isinstance(result, asyncio.Future):
                futures.append(result)
                continue
            future: asyncio.Future[Any] = loop.create_future()
            future.set_result(result)
            futures.append(future)
        return futures

    @staticmethod
    async def _read_async(batch: _CacheBatch, spec: PlainPath | QueryPath, pending: Awaitable[Any]) -> Any:
        try:
            raw = await pending
        except Exception:
            _logger.debug("Async cache read failed for %s", spec.key, exc_info=True)
            raw = None
        return batch.receive(spec, raw)


class CacheWriter:
    """Persists freshly received values to key-value storage."""

    def __init__(self, *, storage: KeyValueStorage, storage_prefix: str) -> None:
        self._storage = storage
        self._prefix = storage_prefix
        self._pending: set[asyncio.Future[Any]] = set()

    def write(self, action: ReceiveSnapshots) -> None:
        if action.from_cache:
            return
        for key, received in action.values.items():
            try:
                payload = json.dumps(received.value)
            except (TypeError, ValueError):
                _logger.debug("Not caching unserializable value for %s", key, exc_info=True)
                continue
            result = self._storage.set_item(self._prefix + key, payload)
            if inspect.isawaitable(result):
                self._track(key, result)

    def _track(self, key: str, pending: Awaitable[Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _logger.debug("No running loop for async cache write of %s", key)
            if inspect.iscoroutine(pending):
                pending.close()
            return
        task = asyncio.ensure_future(pending, loop=loop)

        def _done(fut: asyncio.Future[Any]) -> None:
            self._pending.discard(fut)
            if not fut.cancelled() and fut.exception() is not None:
                _logger.debug("Async cache write failed for %s", key, exc_info=fut.exception())

        self._pending.add(task)
        task.add_done_callback(_done)

    def wrap(self, reducer: Callable[[Any, Any], Any]) -> Callable[[Any, Any], Any]:
        """Return a reducer that applies *reducer* and then caches received values."""

        def reduce(state: Any, action: Any) -> Any:
            next_state = reducer(state, action)
            if isinstance(action, ReceiveSnapshots):
                self.write(action)
            return next_state

        return reduce
