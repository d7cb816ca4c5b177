"""reactivex operators built on the distinct filter step."""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

from reactivex import Observable, abc
from reactivex.disposable import CompositeDisposable, Disposable

from distinctstream.config.distinct import DistinctConfig
from distinctstream.transforms.stream.distinct import DistinctFilter, FilterState

_T = TypeVar("_T")


def distinct_until_changed_immutable(
    compare: Optional[Callable[[Any, Any], Any]] = None,
    key_selector: Optional[Callable[[_T], Any]] = None,
    *,
    strict: bool = False,
) -> Callable[[Observable[_T]], Observable[_T]]:
    """Emit values whose key differs from the key of the last emitted value.

    The comparator receives a deep copy of the previous key, taken when that
    key was accepted, and the new key: ``compare(previous, next)``. A truthy
    result drops the value. Without a comparator keys are compared with
    :func:`~distinctstream.utils.equality.deep_equal`.

    Example::

        reactivex.of({"a": 1}, {"a": 1}, {"a": 2}).pipe(
            distinct_until_changed_immutable(),
        )  # {"a": 1}, {"a": 2}
    """
    config = DistinctConfig(compare=compare, key_selector=key_selector, strict=strict)

    def _distinct(source: Observable[_T]) -> Observable[_T]:
        def subscribe(
            observer: abc.ObserverBase[_T],
            scheduler: Optional[abc.SchedulerBase] = None,
        ) -> abc.DisposableBase:
            step = DistinctFilter(config.compare, config.key_selector, copy_options=config.copy_options)

            def on_next(value: _T) -> None:
                if step.state is FilterState.TERMINATED:
                    return
                try:
                    accepted = step.push(value)
                except Exception as err:
                    observer.on_error(err)
                    return
                if accepted:
                    observer.on_next(value)

            def on_error(error: Exception) -> None:
                if step.state is FilterState.TERMINATED:
                    return
                step.terminate()
                observer.on_error(error)

            def on_completed() -> None:
                if step.state is FilterState.TERMINATED:
                    return
                step.terminate()
                observer.on_completed()

            subscription = source.subscribe(
                on_next, on_error, on_completed, scheduler=scheduler
            )
            return CompositeDisposable(subscription, Disposable(step.terminate))

        return Observable(subscribe)

    return _distinct
