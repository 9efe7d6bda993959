from __future__ import annotations

import pytest

from pymirror.exceptions import PathSpecError
from pymirror.paths import (
    PlainPath,
    QueryPath,
    coerce_path_spec,
    coerce_path_specs,
    join_path,
    normalize_path,
    parent_paths,
    path_spec_key,
    split_path,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("/todos/42/", "todos/42"),
        ("todos/42", "todos/42"),
        ("/", ""),
        ("", ""),
    ],
)
def test_normalize_path_is_idempotent(raw: str, expected: str) -> None:
    assert normalize_path(raw) == expected
    assert normalize_path(normalize_path(raw)) == expected


def test_split_and_join_paths() -> None:
    assert split_path("/a/b/c/") == ["a", "b", "c"]
    assert split_path("/") == []
    assert join_path("/a/", "b", "", "/c") == "a/b/c"


def test_parent_paths_walks_most_specific_first() -> None:
    assert list(parent_paths("/a/b/c")) == ["a/b/c", "a/b", "a"]
    assert list(parent_paths("a")) == ["a"]


def test_plain_key_is_normalized_path() -> None:
    assert path_spec_key(PlainPath(path="/todos/")) == "todos"
    assert coerce_path_spec("/todos").key == "todos"


def test_query_key_renders_fields_in_fixed_order() -> None:
    spec = coerce_path_spec({"path": "/baz", "filter": {"limitToLast": 2}, "orderByKey": True})

    assert isinstance(spec, QueryPath)
    assert spec.key == "baz|2|||||true||"


def test_query_key_is_deterministic_regardless_of_input_order() -> None:
    first = coerce_path_spec({"orderByChild": "rank", "path": "scores", "filter": {"startAt": 1, "limitToFirst": 10}})
    second = coerce_path_spec({"path": "/scores/", "filter": {"limitToFirst": 10, "startAt": 1}, "orderByChild": "rank"})

    assert first.key == second.key


def test_query_key_distinguishes_filters() -> None:
    by_start = coerce_path_spec({"path": "baz", "filter": {"startAt": "a"}})
    by_end = coerce_path_spec({"path": "baz", "filter": {"endAt": "a"}})
    last_two = coerce_path_spec({"path": "baz", "filter": {"limitToLast": 2}})
    last_three = coerce_path_spec({"path": "baz", "filter": {"limitToLast": 3}})

    assert len({by_start.key, by_end.key, last_two.key, last_three.key}) == 4
    assert last_two.key != PlainPath(path="baz").key


def test_snake_case_and_wire_names_are_equivalent() -> None:
    wire = coerce_path_spec({"path": "x", "orderByChild": "n", "filter": {"equalTo": False}})
    native = QueryPath(path="x", order_by_child="n", filter={"equal_to": False})

    assert wire.key == native.key
    assert wire.key.endswith("|false||n|")


@pytest.mark.parametrize("bad", [42, None, {"filter": {"limitToLast": 2}}, {"path": "x", "bogus": 1}])
def test_invalid_path_specs_raise(bad: object) -> None:
    with pytest.raises(PathSpecError):
        coerce_path_spec(bad)  # type: ignore[arg-type]


def test_coerce_path_specs_collapses_duplicate_keys() -> None:
    specs = coerce_path_specs(["/a", "a/", "b", {"path": "a"}])

    assert [spec.key for spec in specs] == ["a", "b", "a||||||||"]
