"""Remote database interface and query construction."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from pymirror._constants import FILTER_FIELDS
from pymirror.paths import PlainPath, QueryPath

_logger = logging.getLogger(__name__)

VALUE_EVENT = "value"


class Snapshot(Protocol):
    def val(self) -> Any: ...


SnapshotCallback = Callable[[Snapshot], None]


class Reference(Protocol):
    """Structural interface for a database location or query.

    Mirrors the value-event and query-builder surface of the Firebase
    Realtime Database SDKs. Having a protocol here makes it easy to pass test
    doubles while keeping the production adapter outside this package.
    """

    def on(self, event: str, callback: SnapshotCallback) -> Any: ...

    def off(self, event: str) -> Any: ...

    def once(self, event: str, callback: SnapshotCallback) -> Any: ...

    def order_by_key(self) -> Reference: ...

    def order_by_child(self, name: str) -> Reference: ...

    def order_by_value(self) -> Reference: ...

    def limit_to_first(self, limit: int) -> Reference: ...

    def limit_to_last(self, limit: int) -> Reference: ...

    def start_at(self, value: Any) -> Reference: ...

    def end_at(self, value: Any) -> Reference: ...

    def equal_to(self, value: Any) -> Reference: ...


class Database(Protocol):
    def ref(self, path: str) -> Reference: ...


class FirebaseApp(Protocol):
    def database(self) -> Database: ...


def build_query(database: Database, spec: PlainPath | QueryPath) -> Reference:
    """Build the remote reference for *spec*.

    At most one ordering is applied (key, then value, then child). Filters
    are then applied in the same fixed order used to build path spec keys.
    """
    if isinstance(spec, PlainPath):
        return database.ref(spec.path)

    ref = database.ref(spec.path)
    if spec.order_by_key:
        ref = ref.order_by_key()
    elif spec.order_by_value:
        ref = ref.order_by_value()
    elif spec.order_by_child:
        ref = ref.order_by_child(spec.order_by_child)

    if spec.filter is not None:
        for name in FILTER_FIELDS:
            value = getattr(spec.filter, name)
            if value is None:
                continue
            ref = getattr(ref, name)(value)
    _logger.debug("Built query for %s", spec.key)
    return ref
