"""Mirror tree storage strategies.

The mirror reducer never touches the tree directly; it goes through a
:class:`MirrorStorage` so applications can plug in their own tree
representation. :class:`DictMirrorStorage` is the default and stores the tree
as nested plain dicts with copy-on-write updates.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, Protocol, TypeVar

from pymirror.paths import split_path

M = TypeVar("M")


class MirrorStorage(Protocol[M]):
    """Structural interface for a hierarchical mirror tree.

    Implementations must treat trees as immutable values: ``set_values``
    returns a new tree and leaves its input untouched.
    """

    def get_keys_at_path(self, mirror: M, path: str) -> list[str]: ...

    def get_value_at_path(self, mirror: M, path: str) -> Any: ...

    def set_values(self, mirror: M, values: Mapping[str, Any]) -> M: ...

    def get_initial_mirror(self) -> M: ...


def _set_in(node: Any, segments: list[str], value: Any) -> Any:
    """Return a copy of *node* with *value* written at *segments*.

    Only the dicts along the path are copied; untouched branches are shared
    with the previous tree. Writing ``None`` removes the key.
    """
    if not segments:
        return copy.deepcopy(value)

    head, rest = segments[0], segments[1:]
    existing = node if isinstance(node, dict) else {}
    if value is None and head not in existing:
        return node
    updated = dict(existing)
    if not rest and value is None:
        updated.pop(head, None)
        return updated
    updated[head] = _set_in(existing.get(head), rest, value)
    return updated


def _get_in(node: Any, segments: list[str]) -> Any:
    for segment in segments:
        if not isinstance(node, dict):
            return None
        node = node.get(segment)
        if node is None:
            return None
    return node


class DictMirrorStorage:
    """Nested-dict mirror tree."""

    def get_keys_at_path(self, mirror: dict[str, Any], path: str) -> list[str]:
        node = _get_in(mirror, split_path(path))
        if not isinstance(node, dict):
            return []
        return list(node.keys())

    def get_value_at_path(self, mirror: dict[str, Any], path: str) -> Any:
        return copy.deepcopy(_get_in(mirror, split_path(path)))

    def set_values(self, mirror: dict[str, Any], values: Mapping[str, Any]) -> dict[str, Any]:
        result: Any = mirror
        for path, value in values.items():
            result = _set_in(result, split_path(path), value)
        return result if isinstance(result, dict) else {}

    def get_initial_mirror(self) -> dict[str, Any]:
        return {}
