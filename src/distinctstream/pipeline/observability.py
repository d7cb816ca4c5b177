from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class TransformEvent:
    """Structured notification emitted by a transform when it finishes."""

    type: str
    payload: Mapping[str, object] = field(default_factory=dict)


Observer = Callable[[TransformEvent], None]
# Returns None when the logger would drop everything the observer reports.
ObserverFactory = Callable[[logging.Logger], Optional[Observer]]


@runtime_checkable
class SupportsObserver(Protocol):
    def set_observer(self, observer: Optional[Observer]) -> None:
        ...


class ObserverRegistry:
    """Maps transform names to observer factories."""

    def __init__(self, factories: Optional[Mapping[str, ObserverFactory]] = None) -> None:
        self._factories = dict(factories or {})

    def register(self, name: str, factory: ObserverFactory) -> None:
        self._factories[name] = factory

    def observer_for(self, name: str, logger: logging.Logger) -> Optional[Observer]:
        factory = self._factories.get(name)
        return factory(logger) if factory is not None else None


def _distinct_observer_factory(logger: logging.Logger) -> Optional[Observer]:
    if not logger.isEnabledFor(logging.DEBUG):
        return None

    def _observer(event: TransformEvent) -> None:
        if event.type != "distinct_summary":
            return
        logger.debug(
            "Distinct filter finished: reason=%s accepted=%s dropped=%s",
            event.payload.get("reason"),
            event.payload.get("accepted"),
            event.payload.get("dropped"),
        )

    return _observer


def default_observer_registry() -> ObserverRegistry:
    return ObserverRegistry({"distinct_until_changed": _distinct_observer_factory})
