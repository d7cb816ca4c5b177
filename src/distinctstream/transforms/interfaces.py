from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from typing import Any


class StreamTransformBase(ABC):
    """Base interface for transforms over a value stream."""

    def __call__(self, stream: Iterable[Any]) -> Iterator[Any]:
        return self.apply(stream)

    @abstractmethod
    def apply(self, stream: Iterable[Any]) -> Iterator[Any]:
        ...
