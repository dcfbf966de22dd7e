# src/problem_tree/store/tree.py

"""
Tree primitives over tuples of Problems.

Every primitive is a pure function: it rebuilds only the nodes on the path to
the target and reuses every other node as-is. Lookups are depth-first
pre-order (root 0, its children in order, then root 1, ...) and the first
match wins.

Mutating primitives return `(new_roots, found)`; when nothing matched the
original tuple is returned unchanged.
"""

from __future__ import annotations

import dataclasses
from collections import Counter
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import Any

from ..core.models import Problem

Roots = tuple[Problem, ...]
Patch = Mapping[str, Any] | Callable[[Problem], Problem]


class InvalidReorderError(ValueError):
    """Raised when a new order is not a permutation of the existing children."""


# ---- read-only ----


def iter_problems(roots: Iterable[Problem]) -> Iterator[Problem]:
    for p in roots:
        yield p
        yield from iter_problems(p.subproblems)


def walk_with_path(
    roots: Iterable[Problem], ancestors: tuple[Problem, ...] = ()
) -> Iterator[tuple[Problem, tuple[Problem, ...]]]:
    """Pre-order walk yielding (node, ancestors-from-root)."""
    for p in roots:
        yield p, ancestors
        yield from walk_with_path(p.subproblems, (*ancestors, p))


def find_by_id(roots: Iterable[Problem], problem_id: str) -> Problem | None:
    for p in iter_problems(roots):
        if p.id == problem_id:
            return p
    return None


def find_path(roots: Iterable[Problem], problem_id: str) -> list[Problem] | None:
    for p, ancestors in walk_with_path(roots):
        if p.id == problem_id:
            return [*ancestors, p]
    return None


def collect_ids(roots: Iterable[Problem]) -> list[str]:
    return [p.id for p in iter_problems(roots)]


def find_duplicate_ids(ids: Iterable[str]) -> list[str]:
    return sorted(i for i, n in Counter(ids).items() if n > 1)


# ---- rebuild helpers ----


def _apply_patch(node: Problem, patch: Patch) -> Problem:
    if callable(patch):
        return patch(node)
    return dataclasses.replace(node, **dict(patch))


def _map_first(
    roots: Roots, problem_id: str, fn: Callable[[Problem], Problem | None]
) -> tuple[Roots, bool]:
    """
    Rebuild `roots` with `fn` applied to the first node with `problem_id`.
    `fn` returning None removes the node (and its subtree).
    """
    for i, p in enumerate(roots):
        if p.id == problem_id:
            new = fn(p)
            if new is None:
                return roots[:i] + roots[i + 1 :], True
            return roots[:i] + (new,) + roots[i + 1 :], True

        children, found = _map_first(p.subproblems, problem_id, fn)
        if found:
            return roots[:i] + (dataclasses.replace(p, subproblems=children),) + roots[i + 1 :], True
    return roots, False


# ---- mutating ----


def insert_child(roots: Roots, parent_id: str | None, node: Problem) -> tuple[Roots, bool]:
    if parent_id is None:
        return (*roots, node), True
    return _map_first(
        roots,
        parent_id,
        lambda parent: dataclasses.replace(parent, subproblems=(*parent.subproblems, node)),
    )


def replace_by_id(roots: Roots, problem_id: str, patch: Patch) -> tuple[Roots, bool]:
    return _map_first(roots, problem_id, lambda p: _apply_patch(p, patch))


def delete_by_id(roots: Roots, problem_id: str) -> tuple[Roots, bool]:
    return _map_first(roots, problem_id, lambda _p: None)


def take_by_id(roots: Roots, problem_id: str) -> tuple[Roots, Problem | None]:
    """Remove the first match and hand it back (subtree intact)."""
    taken: list[Problem] = []

    def grab(p: Problem) -> None:
        taken.append(p)
        return None

    new_roots, found = _map_first(roots, problem_id, grab)
    return new_roots, (taken[0] if found else None)


def ensure_permutation(existing: Sequence[str], new_order: Sequence[str]) -> None:
    """The new order must contain exactly the existing ids, each once."""
    if len(new_order) != len(existing):
        raise InvalidReorderError(
            f"reorder expects {len(existing)} items, got {len(new_order)}"
        )
    dupes = find_duplicate_ids(new_order)
    if dupes:
        raise InvalidReorderError(f"reorder contains duplicate ids: {', '.join(dupes)}")
    if set(new_order) != set(existing):
        unknown = sorted(set(new_order) - set(existing))
        raise InvalidReorderError(f"reorder contains unknown ids: {', '.join(unknown)}")


def _reordered(children: Roots, new_order: Sequence[str]) -> Roots:
    ensure_permutation([c.id for c in children], new_order)
    by_id = {c.id: c for c in children}
    return tuple(by_id[i] for i in new_order)


def reorder_children(
    roots: Roots, parent_id: str | None, new_order: Sequence[str]
) -> tuple[Roots, bool]:
    """
    Replace one level of children with the same children in `new_order` (ids).

    Raises InvalidReorderError if `new_order` is not a permutation of the
    current children at that level.
    """
    if parent_id is None:
        return _reordered(roots, new_order), True
    return _map_first(
        roots,
        parent_id,
        lambda parent: dataclasses.replace(parent, subproblems=_reordered(parent.subproblems, new_order)),
    )
