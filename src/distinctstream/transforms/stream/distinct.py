from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from enum import Enum
from typing import Any, Callable, Optional

from distinctstream.config.distinct import CopyOptions, DistinctConfig
from distinctstream.pipeline.observability import Observer, TransformEvent
from distinctstream.transforms.interfaces import StreamTransformBase
from distinctstream.utils.copy import deep_copy
from distinctstream.utils.equality import deep_equal

logger = logging.getLogger(__name__)


class FilterState(Enum):
    AWAITING_FIRST = "awaiting_first"
    HAS_BASELINE = "has_baseline"
    TERMINATED = "terminated"


class DistinctFilter:
    """Per-subscription state of the distinct-until-changed step.

    ``push`` decides whether a value is forwarded. The key of every accepted
    value is kept as a deep copy, so mutating a forwarded value later never
    moves the comparison baseline. ``compare(previous, next)`` returning a
    truthy value marks ``next`` as a duplicate.

    Failures from the key selector or the comparator terminate the filter
    and are re-raised unchanged.
    """

    def __init__(
        self,
        compare: Optional[Callable[[Any, Any], Any]] = None,
        key_selector: Optional[Callable[[Any], Any]] = None,
        *,
        strict: bool = False,
        copy_options: Optional[CopyOptions] = None,
    ) -> None:
        if compare is not None and not callable(compare):
            raise TypeError(f"compare must be callable, got {type(compare).__name__}")
        if key_selector is not None and not callable(key_selector):
            raise TypeError(f"key_selector must be callable, got {type(key_selector).__name__}")
        self._compare = compare if compare is not None else deep_equal
        self._key_selector = key_selector
        self._copy_options = copy_options or CopyOptions(is_strict=strict)
        self._retained: Any = None
        self.state = FilterState.AWAITING_FIRST
        self.accepted = 0
        self.dropped = 0

    @property
    def retained_key(self) -> Any:
        return self._retained

    def push(self, value: Any) -> bool:
        if self.state is FilterState.TERMINATED:
            return False
        try:
            key = self._key_selector(value) if self._key_selector is not None else value
            if self.state is FilterState.HAS_BASELINE and self._compare(self._retained, key):
                self.dropped += 1
                return False
            snapshot = deep_copy(key, options=self._copy_options)
        except Exception:
            self.terminate()
            raise
        self._retained = snapshot
        self.state = FilterState.HAS_BASELINE
        self.accepted += 1
        return True

    def terminate(self) -> None:
        if self.state is FilterState.TERMINATED:
            return
        self.state = FilterState.TERMINATED
        self._retained = None
        logger.debug(
            "Released retained key: accepted=%d dropped=%d", self.accepted, self.dropped
        )


class DistinctUntilChangedTransform(StreamTransformBase):
    """Drop values whose key equals the key of the previously emitted value.

    Parameters
    - compare: optional ``compare(previous_key, next_key)``; truthy means duplicate.
      Defaults to deep structural equality.
    - key_selector: optional projection applied before comparing.
    - strict: snapshot keys with the strict copy strategy.

    Every ``apply`` call owns its own filter state. Closing the returned
    generator closes the upstream iterator as well.
    """

    def __init__(
        self,
        compare: Optional[Callable[[Any, Any], Any]] = None,
        key_selector: Optional[Callable[[Any], Any]] = None,
        *,
        strict: bool = False,
    ) -> None:
        config = DistinctConfig(compare=compare, key_selector=key_selector, strict=strict)
        self.compare = config.compare
        self.key_selector = config.key_selector
        self.strict = config.strict
        self._copy_options = config.copy_options
        self._observer: Optional[Observer] = None

    def set_observer(self, observer: Optional[Observer]) -> None:
        self._observer = observer

    def apply(self, stream: Iterable[Any]) -> Iterator[Any]:
        source = iter(stream)
        step = DistinctFilter(self.compare, self.key_selector, copy_options=self._copy_options)
        reason = "cancelled"
        try:
            for value in source:
                try:
                    accepted = step.push(value)
                except Exception:
                    # Upstream is still live when the filter itself fails.
                    _close_source(source)
                    raise
                if accepted:
                    yield value
            reason = "completed"
        except Exception:
            reason = "error"
            raise
        finally:
            step.terminate()
            if reason == "cancelled":
                _close_source(source)
            if self._observer is not None:
                self._observer(
                    TransformEvent(
                        type="distinct_summary",
                        payload={
                            "reason": reason,
                            "accepted": step.accepted,
                            "dropped": step.dropped,
                        },
                    )
                )


def _close_source(source: Iterator[Any]) -> None:
    close = getattr(source, "close", None)
    if callable(close):
        close()
