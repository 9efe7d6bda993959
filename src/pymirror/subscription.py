"""Declarative subscriptions.

A :class:`Subscription` pairs two pure functions over ``(state, props)``:
``paths`` names what must be mirrored and ``value`` derives a result from
the mirrored state. Subscriptions are immutable; :meth:`Subscription.map_props`
builds a new one by composition.

Usage::

    todo_ids = Subscription(
        paths=lambda state, props: ["/todos"],
        value=lambda state, props: mirror.get_keys_at_path(state, "/todos"),
    )
    todo = Subscription(
        paths=lambda state, props: [f"/todos/{props['todo_id']}"],
        value=lambda state, props: mirror.get_value_at_path(state, f"/todos/{props['todo_id']}"),
    )
    ids = await todo_ids.fetch_now(mirror, store)
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pymirror.exceptions import ConvergenceError, MirrorConfigError, SubscriptionContractError
from pymirror.paths import PathSpecLike, PlainPath, QueryPath, coerce_path_specs
from pymirror.state.store import Store

if TYPE_CHECKING:
    from pymirror.mirror import FirebaseMirror

_logger = logging.getLogger(__name__)

P = TypeVar("P")
Q = TypeVar("Q")
R = TypeVar("R")


def _describe(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)


@dataclasses.dataclass(frozen=True)
class Subscription(Generic[P, R]):
    paths: Callable[[Any, P], Sequence[PathSpecLike]]
    value: Callable[[Any, P], R]

    def map_props(self, transform: Callable[[Q], P]) -> Subscription[Q, R]:
        """Return a subscription that applies *transform* to props first."""
        paths, value = self.paths, self.value

        def mapped_paths(state: Any, props: Q) -> Sequence[PathSpecLike]:
            return paths(state, transform(props))

        def mapped_value(state: Any, props: Q) -> R:
            return value(state, transform(props))

        return Subscription(paths=mapped_paths, value=mapped_value)

    def path_specs(self, state: Any, props: P) -> list[PlainPath | QueryPath]:
        """Evaluate ``paths`` and coerce the result into path specs."""
        result = self.paths(state, props)
        if not isinstance(result, (list, tuple)):
            raise SubscriptionContractError(
                f"Subscription paths function {_describe(self.paths)} must return a list of path specs, "
                f"got {type(result).__name__}"
            )
        return coerce_path_specs(result)

    async def fetch_now(
        self,
        mirror: FirebaseMirror,
        store: Store,
        props: P = None,  # type: ignore[assignment]
        *,
        max_rounds: int | None = None,
    ) -> R:
        """Fetch everything this subscription needs, then return its value.

        Reading some paths can reveal more paths (a list of ids, then each
        item). Each round re-reads the current path set; the loop ends once a
        round adds no key that has not been fetched already.
        """
        limit = mirror.config.max_fetch_rounds if max_rounds is None else max_rounds
        if limit < 1:
            raise MirrorConfigError(f"max_rounds must be >= 1, got {limit}")
        fetched: set[str] = set()
        specs = self.path_specs(store.get_state(), props)

        for round_number in range(1, limit + 1):
            await mirror.fetch_values(store, specs)
            fetched.update(spec.key for spec in specs)

            specs = self.path_specs(store.get_state(), props)
            missing = {spec.key for spec in specs} - fetched
            if not missing:
                _logger.debug("Fetch converged after %d round(s)", round_number)
                return self.value(store.get_state(), props)
            _logger.debug("Fetch round %d revealed %d new path(s)", round_number, len(missing))

        raise ConvergenceError(
            f"Subscription paths did not stabilize after {limit} fetch rounds",
            rounds=limit,
            pending_keys=missing,
        )
