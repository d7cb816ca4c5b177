"""Shared value classification for the deep equality and deep copy engines.

Every value is mapped once to a :class:`ValueKind` and both engines dispatch
on that closed set. Anything not recognized lands in ``CUSTOM`` (objects with
instance state) or ``OPAQUE`` (everything that is compared by identity/``==``
and never copied).
"""

from __future__ import annotations

import array
import asyncio
import concurrent.futures
import datetime as dt
import functools
import inspect
import io
import numbers
import re
import types
import weakref
from collections import deque
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any


class ValueKind(Enum):
    PRIMITIVE = "primitive"
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    DATE = "date"
    PATTERN = "pattern"
    MAP = "map"
    SET = "set"
    BUFFER = "buffer"
    OPAQUE = "opaque"
    CUSTOM = "custom"


COMPOSITE_KINDS = frozenset(
    {
        ValueKind.MAPPING,
        ValueKind.SEQUENCE,
        ValueKind.MAP,
        ValueKind.SET,
        ValueKind.CUSTOM,
    }
)

_PRIMITIVE_TYPES = (bool, numbers.Number, str, bytes, Enum, type(Ellipsis), type(NotImplemented))
_DATE_TYPES = (dt.datetime, dt.date, dt.time, dt.timedelta)
_BUFFER_TYPES = (bytearray, memoryview, array.array)

# Function-like values, promise-likes, errors and weak containers are
# returned as-is by the copy engine.
_PASSTHROUGH_TYPES = (
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.BuiltinMethodType,
    types.ModuleType,
    types.FrameType,
    types.TracebackType,
    types.CodeType,
    functools.partial,
    BaseException,
    asyncio.Future,
    concurrent.futures.Future,
    weakref.ref,
    weakref.ProxyType,
    weakref.CallableProxyType,
    weakref.WeakKeyDictionary,
    weakref.WeakValueDictionary,
    weakref.WeakSet,
    io.IOBase,
    Iterator,
)

# Attribute values that only make sense inside an executing call.
CALL_ARTIFACT_TYPES = (types.FrameType, types.TracebackType)

_SKIPPED_SLOTS = frozenset({"__dict__", "__weakref__"})


def classify(value: Any) -> ValueKind:
    if value is None or isinstance(value, _PRIMITIVE_TYPES):
        return ValueKind.PRIMITIVE
    if is_passthrough(value):
        return ValueKind.OPAQUE
    if type(value) is dict:
        return ValueKind.MAPPING
    if isinstance(value, (list, tuple, deque)):
        return ValueKind.SEQUENCE
    if isinstance(value, _DATE_TYPES):
        return ValueKind.DATE
    if isinstance(value, re.Pattern):
        return ValueKind.PATTERN
    if isinstance(value, (set, frozenset)):
        return ValueKind.SET
    if isinstance(value, _BUFFER_TYPES):
        return ValueKind.BUFFER
    if isinstance(value, Mapping):
        return ValueKind.MAP
    if not hasattr(value, "__dict__") and not any(True for _ in iter_slots(value)):
        return ValueKind.OPAQUE
    return ValueKind.CUSTOM


def is_passthrough(value: Any) -> bool:
    return isinstance(value, _PASSTHROUGH_TYPES) or inspect.isawaitable(value)


def _mangle(cls: type, name: str) -> str:
    if name.startswith("__") and not name.endswith("__"):
        return f"_{cls.__name__.lstrip('_')}{name}"
    return name


def iter_slots(obj: Any) -> Iterator[tuple[str, Any, Any]]:
    """Yield ``(name, descriptor, value)`` for every populated slot of ``obj``.

    Slots are read through their member descriptors so ``__getattr__`` and
    properties on subclasses never get in the way.
    """
    seen: set[str] = set()
    for cls in type(obj).__mro__:
        slots = cls.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for raw in slots:
            if raw in _SKIPPED_SLOTS:
                continue
            name = _mangle(cls, raw)
            if name in seen:
                continue
            seen.add(name)
            descriptor = cls.__dict__.get(name)
            if descriptor is None or not hasattr(descriptor, "__get__"):
                continue
            try:
                value = descriptor.__get__(obj, type(obj))
            except AttributeError:
                continue
            yield name, descriptor, value


def instance_dict(obj: Any) -> dict[str, Any]:
    try:
        state = object.__getattribute__(obj, "__dict__")
    except AttributeError:
        return {}
    return state if isinstance(state, dict) else dict(state)


def own_state(obj: Any) -> dict[str, Any]:
    """Return the instance attributes of ``obj``: ``__dict__`` plus slots."""
    state = dict(instance_dict(obj))
    for name, _descriptor, value in iter_slots(obj):
        state[name] = value
    return state
