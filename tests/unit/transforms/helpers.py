from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable


@dataclass
class Reading:
    sensor: str
    time: datetime
    payload: dict = field(default_factory=dict)


def make_reading(sensor: str, hour: int, **payload: Any) -> Reading:
    return Reading(
        sensor=sensor,
        time=datetime(2024, 1, 1, hour=hour, tzinfo=timezone.utc),
        payload=dict(payload),
    )


class TrackedSource:
    """Iterator over ``values`` that records ``close()`` and can fail midway."""

    def __init__(self, values: Iterable[Any], *, fail_at: int | None = None, error: Exception | None = None):
        self._values = list(values)
        self._fail_at = fail_at
        self._error = error or RuntimeError("source failed")
        self._index = 0
        self.closed = False
        self.pulled = 0

    def __iter__(self) -> "TrackedSource":
        return self

    def __next__(self) -> Any:
        if self.closed:
            raise StopIteration
        if self._fail_at is not None and self._index == self._fail_at:
            raise self._error
        if self._index >= len(self._values):
            raise StopIteration
        value = self._values[self._index]
        self._index += 1
        self.pulled += 1
        return value

    def close(self) -> None:
        self.closed = True
