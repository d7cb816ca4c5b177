from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Mapping, Optional

from distinctstream.pipeline.observability import (
    ObserverRegistry,
    SupportsObserver,
    default_observer_registry,
)
from distinctstream.plugins import TRANSFORMS_EP
from distinctstream.utils.load import load_ep

logger = logging.getLogger(__name__)


def _split_clause(clause: Any) -> tuple[str, Any]:
    if not isinstance(clause, Mapping) or len(clause) != 1:
        raise TypeError(f"Transform must be one-key mapping, got: {clause!r}")
    (name, params), = clause.items()
    return name, params


def build_transforms(
    clauses: list[dict] | None,
    *,
    group: str = TRANSFORMS_EP,
    observers: Optional[ObserverRegistry] = None,
) -> list[Any]:
    """Instantiate configured transforms from ``{name: params}`` clauses."""
    registry = observers or default_observer_registry()
    ts = []
    for clause in clauses or []:
        name, params = _split_clause(clause)
        cls = load_ep(group=group, name=name)
        if params is None:
            transform = cls()
        elif isinstance(params, Mapping):
            transform = cls(**params)
        elif isinstance(params, (list, tuple)):
            transform = cls(*params)
        else:
            transform = cls(params)
        if isinstance(transform, SupportsObserver):
            observer = registry.observer_for(name, logger)
            if observer is not None:
                transform.set_observer(observer)
        ts.append(transform)
    return ts


def transform_stream(
    stream: Iterable[Any],
    clauses: list[dict] | None,
    *,
    group: str = TRANSFORMS_EP,
    observers: Optional[ObserverRegistry] = None,
) -> Iterator[Any]:
    out: Iterable[Any] = stream
    for t in build_transforms(clauses, group=group, observers=observers):
        out = t.apply(out)
    return iter(out)
