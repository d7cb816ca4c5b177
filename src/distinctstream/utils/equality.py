from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from distinctstream.utils.kinds import COMPOSITE_KINDS, ValueKind, classify, own_state


class _Visited:
    """Identity caches for one top-level comparison, one per operand.

    A pair is registered while its members are being compared. Reaching a
    registered node again means a cycle; it is equal only when it is paired
    with the same counterpart as before.
    """

    __slots__ = ("left", "right")

    def __init__(self) -> None:
        self.left: dict[int, Any] = {}
        self.right: dict[int, Any] = {}

    def seen(self, a: Any, b: Any) -> bool | None:
        other = self.left.get(id(a))
        mirror = self.right.get(id(b))
        if other is None and mirror is None:
            return None
        return other is b and mirror is a

    def enter(self, a: Any, b: Any) -> None:
        self.left[id(a)] = b
        self.right[id(b)] = a

    def leave(self, a: Any, b: Any) -> None:
        self.left.pop(id(a), None)
        self.right.pop(id(b), None)


def deep_equal(a: Any, b: Any) -> bool:
    """Structural, recursive and cycle-safe equality.

    Primitives use ``==``; composite values must share their exact type and
    be equal member by member. See :class:`~distinctstream.utils.kinds.ValueKind`
    for how values are grouped.
    """
    return _equal(a, b, _Visited())


def _equal(a: Any, b: Any, visited: _Visited) -> bool:
    if a is b:
        return True
    kind = classify(a)
    if kind is not classify(b):
        return False
    if kind is ValueKind.PRIMITIVE:
        return bool(a == b)
    if type(a) is not type(b):
        return False
    if kind not in COMPOSITE_KINDS:
        return _LEAF_COMPARERS[kind](a, b)

    cycle = visited.seen(a, b)
    if cycle is not None:
        return cycle
    visited.enter(a, b)
    try:
        return _COMPOSITE_COMPARERS[kind](a, b, visited)
    finally:
        visited.leave(a, b)


def _equal_items(a: Mapping, b: Mapping, visited: _Visited) -> bool:
    if len(a) != len(b):
        return False
    for key, value in a.items():
        if key not in b:
            return False
        if not _equal(value, b[key], visited):
            return False
    return True


def _equal_sequence(a: Any, b: Any, visited: _Visited) -> bool:
    if len(a) != len(b):
        return False
    if getattr(a, "maxlen", None) != getattr(b, "maxlen", None):
        return False
    return all(_equal(x, y, visited) for x, y in zip(a, b))


def _equal_set(a: Any, b: Any, visited: _Visited) -> bool:
    if len(a) != len(b):
        return False
    unmatched = list(b)
    for member in a:
        if member in b:
            # Hash lookup found an equal member; take it out of the pool.
            for index, candidate in enumerate(unmatched):
                if candidate is member or candidate == member:
                    del unmatched[index]
                    break
            continue
        for index, candidate in enumerate(unmatched):
            if _equal(member, candidate, visited):
                del unmatched[index]
                break
        else:
            return False
    return not unmatched


def _equal_custom(a: Any, b: Any, visited: _Visited) -> bool:
    return _equal_items(own_state(a), own_state(b), visited)


def _equal_date(a: Any, b: Any) -> bool:
    return bool(a == b)


def _equal_pattern(a: Any, b: Any) -> bool:
    return a.pattern == b.pattern and a.flags == b.flags


def _equal_buffer(a: Any, b: Any) -> bool:
    left = a.tobytes() if hasattr(a, "tobytes") else bytes(a)
    right = b.tobytes() if hasattr(b, "tobytes") else bytes(b)
    return left == right


def _equal_opaque(a: Any, b: Any) -> bool:
    return bool(a == b)


_LEAF_COMPARERS: dict[ValueKind, Callable[[Any, Any], bool]] = {
    ValueKind.DATE: _equal_date,
    ValueKind.PATTERN: _equal_pattern,
    ValueKind.BUFFER: _equal_buffer,
    ValueKind.OPAQUE: _equal_opaque,
}

_COMPOSITE_COMPARERS: dict[ValueKind, Callable[[Any, Any, _Visited], bool]] = {
    ValueKind.MAPPING: _equal_items,
    ValueKind.MAP: _equal_items,
    ValueKind.SEQUENCE: _equal_sequence,
    ValueKind.SET: _equal_set,
    ValueKind.CUSTOM: _equal_custom,
}
