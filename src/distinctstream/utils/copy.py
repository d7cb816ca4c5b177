"""Deep copy engine used to snapshot retained keys.

``deep_copy`` walks a value and rebuilds every composite part of it so that
the result shares no mutable reference with the source. Function-like
values, promise-likes, exceptions and weak containers are handed back
unchanged. Cycles in the source are reproduced in the copy.

Two attribute strategies are available:

- loose (default): containers copy only their members; objects copy their
  ``__dict__`` entries and populated slots.
- strict: additionally copies the instance attributes of container
  subclasses, and skips attribute values that only exist for an executing
  call (frames, tracebacks).
"""

from __future__ import annotations

import array
import collections
import datetime as dt
import re
import types
from collections import ChainMap, deque
from collections.abc import Callable, MutableMapping
from typing import Any, Optional, TypeVar

from distinctstream.utils.kinds import (
    CALL_ARTIFACT_TYPES,
    ValueKind,
    classify,
    instance_dict,
    iter_slots,
)

T = TypeVar("T")


class _CopyContext:
    """Per-call state: strict flag plus the ``id(original) -> clone`` memo."""

    __slots__ = ("strict", "memo", "_keepalive")

    def __init__(self, strict: bool) -> None:
        self.strict = strict
        self.memo: dict[int, Any] = {}
        self._keepalive: list[Any] = []

    def remember(self, original: Any, clone: Any) -> Any:
        self.memo[id(original)] = clone
        self._keepalive.append(original)
        return clone


def deep_copy(value: T, *, strict: bool = False, options: Optional[Any] = None) -> T:
    """Return a structurally equal, reference-independent copy of ``value``.

    ``options`` accepts a :class:`~distinctstream.config.distinct.CopyOptions`
    (or anything with an ``is_strict`` attribute) and wins over ``strict``.
    """
    if options is not None:
        strict = bool(getattr(options, "is_strict", strict))
    return _copy(value, _CopyContext(strict))


def strict_copy(value: T) -> T:
    return deep_copy(value, strict=True)


def _copy(value: Any, ctx: _CopyContext) -> Any:
    kind = classify(value)
    if kind is ValueKind.PRIMITIVE or kind is ValueKind.OPAQUE:
        return value
    cached = ctx.memo.get(id(value))
    if cached is not None:
        return cached
    return _COPIERS[kind](value, ctx)


def clean_clone(obj: Any) -> Any:
    """Return an empty instance of ``type(obj)``.

    Built-in classes get their zero-argument constructor; anything else (or a
    built-in whose constructor fails) is created through ``__new__`` without
    running ``__init__``.
    """
    cls = type(obj)
    if getattr(cls, "__module__", None) == "builtins":
        try:
            return cls()
        except Exception:
            pass
    return _allocate(cls)


def _allocate(cls: type) -> Any:
    try:
        return cls.__new__(cls)
    except Exception:
        # __new__ wants arguments; allocate through the nearest built-in base.
        base = next(c for c in cls.__mro__ if c.__module__ == "builtins")
        return base.__new__(cls)


def _empty_container(cls: type, **kwargs: Any) -> Any:
    try:
        return cls(**kwargs)
    except Exception:
        return _allocate(cls)


def _copy_attributes(source: Any, clone: Any, ctx: _CopyContext) -> None:
    state = instance_dict(source)
    if state:
        target = instance_dict(clone)
        for name, attr in state.items():
            if ctx.strict and isinstance(attr, CALL_ARTIFACT_TYPES):
                continue
            target[name] = _copy(attr, ctx)
    for name, descriptor, attr in iter_slots(source):
        if ctx.strict and isinstance(attr, CALL_ARTIFACT_TYPES):
            continue
        descriptor.__set__(clone, _copy(attr, ctx))


def _copy_mapping(value: dict, ctx: _CopyContext) -> dict:
    clone: dict = ctx.remember(value, {})
    for key, item in value.items():
        clone[key] = _copy(item, ctx)
    return clone


def _copy_sequence(value: Any, ctx: _CopyContext) -> Any:
    cls = type(value)
    if isinstance(value, tuple):
        return _copy_tuple(value, ctx)
    if isinstance(value, deque):
        clone = ctx.remember(value, _empty_container(cls, maxlen=value.maxlen))
    else:
        clone = ctx.remember(value, [] if cls is list else _empty_container(cls))
    for item in value:
        clone.append(_copy(item, ctx))
    if ctx.strict and cls not in (list, deque):
        _copy_attributes(value, clone, ctx)
    return clone


def _copy_tuple(value: tuple, ctx: _CopyContext) -> tuple:
    items = [_copy(item, ctx) for item in value]
    # A cycle running through a mutable member may already have produced
    # a copy of this tuple.
    cached = ctx.memo.get(id(value))
    if cached is not None:
        return cached
    cls = type(value)
    if cls is tuple:
        clone = tuple(items)
    elif hasattr(cls, "_make"):
        clone = cls._make(items)
    else:
        clone = cls.__new__(cls, items)
    if ctx.strict and cls is not tuple:
        _copy_attributes(value, clone, ctx)
    return ctx.remember(value, clone)


def _copy_date(value: Any, ctx: _CopyContext) -> Any:
    if isinstance(value, dt.timedelta):
        return type(value)(days=value.days, seconds=value.seconds, microseconds=value.microseconds)
    return value.replace()


def _copy_pattern(value: re.Pattern, ctx: _CopyContext) -> re.Pattern:
    # Compiled patterns are immutable and carry no match cursor.
    return re.compile(value.pattern, value.flags)


def _copy_map(value: Any, ctx: _CopyContext) -> Any:
    if isinstance(value, types.MappingProxyType):
        return ctx.remember(value, types.MappingProxyType(_copy(dict(value), ctx)))
    if not isinstance(value, MutableMapping):
        # Read-only mappings are rebuilt from their own state.
        return _copy_custom(value, ctx)
    cls = type(value)
    if isinstance(value, ChainMap):
        clone = ctx.remember(value, cls.__new__(cls))
        clone.maps = [_copy(m, ctx) for m in value.maps]
        return clone
    clone = ctx.remember(value, _empty_container(cls))
    if isinstance(value, collections.defaultdict):
        clone.default_factory = value.default_factory
    for key, item in value.items():
        clone[key] = _copy(item, ctx)
    if ctx.strict:
        _copy_attributes(value, clone, ctx)
    return clone


def _copy_set(value: Any, ctx: _CopyContext) -> Any:
    cls = type(value)
    if isinstance(value, frozenset):
        members = [_copy(member, ctx) for member in value]
        cached = ctx.memo.get(id(value))
        if cached is not None:
            return cached
        clone = frozenset(members) if cls is frozenset else cls.__new__(cls, members)
        if ctx.strict and cls is not frozenset:
            _copy_attributes(value, clone, ctx)
        return ctx.remember(value, clone)
    clone = ctx.remember(value, set() if cls is set else _empty_container(cls))
    for member in value:
        clone.add(_copy(member, ctx))
    if ctx.strict and cls is not set:
        _copy_attributes(value, clone, ctx)
    return clone


def _copy_buffer(value: Any, ctx: _CopyContext) -> Any:
    if isinstance(value, bytearray):
        clone = _empty_container(type(value))
        clone.extend(value)
        return clone
    if isinstance(value, array.array):
        cls = type(value)
        try:
            clone = cls(value.typecode)
        except Exception:
            clone = array.array.__new__(cls, value.typecode)
        clone.frombytes(value.tobytes())
        return clone
    view = memoryview(bytearray(value.tobytes()))
    if value.format == "B" and value.ndim <= 1:
        return view
    try:
        return view.cast(value.format, value.shape)
    except (TypeError, ValueError):
        pass
    # Formats ``cast`` rejects: view a copy of the exporting object instead.
    exporter = _copy(value.obj, ctx) if value.obj is not None else None
    if exporter is not None:
        try:
            copied = memoryview(exporter)
        except TypeError:
            copied = None
        if copied is not None and copied.format == value.format and copied.shape == value.shape:
            return copied
    return view


def _copy_custom(value: Any, ctx: _CopyContext) -> Any:
    clone = ctx.remember(value, clean_clone(value))
    _copy_attributes(value, clone, ctx)
    return clone


_COPIERS: dict[ValueKind, Callable[[Any, _CopyContext], Any]] = {
    ValueKind.MAPPING: _copy_mapping,
    ValueKind.SEQUENCE: _copy_sequence,
    ValueKind.DATE: _copy_date,
    ValueKind.PATTERN: _copy_pattern,
    ValueKind.MAP: _copy_map,
    ValueKind.SET: _copy_set,
    ValueKind.BUFFER: _copy_buffer,
    ValueKind.CUSTOM: _copy_custom,
}
