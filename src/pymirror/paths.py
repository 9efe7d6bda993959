"""Path spec model and key normalization.

A path spec names a subscribable location in the remote database. It is a
tagged union of two variants:

* :class:`PlainPath` - a bare path such as ``"/todos/42"``.
* :class:`QueryPath` - a base path plus ordering and filter parameters.

Every path spec has a canonical string key (:func:`path_spec_key`). The key
is the only identity used for deduplication, registry lookup and cache naming.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from pymirror._constants import FILTER_FIELDS, KEY_DELIMITER, ORDER_FIELDS, PATH_SEPARATOR
from pymirror.exceptions import PathSpecError

QueryBound = str | int | float | bool | None


def normalize_path(path: str) -> str:
    """Strip one leading and one trailing separator from *path*."""
    if path.startswith(PATH_SEPARATOR):
        path = path[1:]
    if path.endswith(PATH_SEPARATOR):
        path = path[:-1]
    return path


def split_path(path: str) -> list[str]:
    """Return the segments of *path*; the root path has no segments."""
    normalized = normalize_path(path)
    if not normalized:
        return []
    return normalized.split(PATH_SEPARATOR)


def join_path(*segments: str) -> str:
    return PATH_SEPARATOR.join(normalize_path(s) for s in segments if normalize_path(s))


def parent_paths(path: str) -> Iterator[str]:
    """Yield *path* and then each of its ancestors, most specific first.

    ``parent_paths("a/b/c")`` yields ``"a/b/c"``, ``"a/b"``, ``"a"``.
    """
    current = normalize_path(path)
    while True:
        yield current
        cut = current.rfind(PATH_SEPARATOR)
        if cut < 0:
            return
        current = normalize_path(current[:cut])


class _PathSpecModel(BaseModel):
    """Base for path spec models.

    Accepts both the snake_case field names and the camelCase wire names
    (``limitToLast``, ``orderByChild`` ...).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class QueryFilter(_PathSpecModel):
    limit_to_last: int | None = None
    limit_to_first: int | None = None
    start_at: QueryBound = None
    end_at: QueryBound = None
    equal_to: QueryBound = None


class PlainPath(_PathSpecModel):
    """A bare path. Covered by any subscribed ancestor."""

    kind: Literal["plain"] = "plain"
    path: str

    @property
    def key(self) -> str:
        return path_spec_key(self)


class QueryPath(_PathSpecModel):
    """A path plus query parameters. Only covered by an exact key match."""

    kind: Literal["query"] = "query"
    path: str
    filter: QueryFilter | None = None
    order_by_key: bool | None = None
    order_by_child: str | None = None
    order_by_value: bool | None = None

    @property
    def key(self) -> str:
        return path_spec_key(self)

    @property
    def base_path(self) -> str:
        return normalize_path(self.path)


PathSpec = Annotated[PlainPath | QueryPath, Field(discriminator="kind")]
PathSpecLike = str | Mapping[str, Any] | PlainPath | QueryPath


def _render_field(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def path_spec_key(spec: PlainPath | QueryPath) -> str:
    """Return the canonical key for *spec*.

    Plain paths are keyed by their normalized path. Queries append their filter
    fields and then their order fields, in a fixed order, each rendered as its
    value or an empty string.
    """
    if isinstance(spec, PlainPath):
        return normalize_path(spec.path)
    if isinstance(spec, QueryPath):
        query_filter = spec.filter or QueryFilter()
        parts = [normalize_path(spec.path)]
        parts.extend(_render_field(getattr(query_filter, name)) for name in FILTER_FIELDS)
        parts.extend(_render_field(getattr(spec, name)) for name in ORDER_FIELDS)
        return KEY_DELIMITER.join(parts)
    raise PathSpecError(f"Not a path spec: {spec!r}")


def coerce_path_spec(value: PathSpecLike) -> PlainPath | QueryPath:
    """Convert a string, wire-format mapping or model into a path spec."""
    if isinstance(value, (PlainPath, QueryPath)):
        return value
    if isinstance(value, str):
        return PlainPath(path=value)
    if isinstance(value, Mapping):
        try:
            return QueryPath.model_validate(dict(value))
        except ValidationError as exc:
            raise PathSpecError(f"Invalid query path spec {dict(value)!r}: {exc}") from exc
    raise PathSpecError(f"Path specs must be strings or mappings, got {type(value).__name__}")


def coerce_path_specs(values: Iterable[PathSpecLike]) -> list[PlainPath | QueryPath]:
    """Coerce *values*, dropping later duplicates of the same key."""
    seen: set[str] = set()
    specs: list[PlainPath | QueryPath] = []
    for value in values:
        spec = coerce_path_spec(value)
        key = spec.key
        if key in seen:
            continue
        seen.add(key)
        specs.append(spec)
    return specs
