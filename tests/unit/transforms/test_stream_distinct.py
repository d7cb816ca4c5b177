from __future__ import annotations

from collections.abc import Mapping

import pytest

from distinctstream.config.distinct import CopyOptions, DistinctConfig
from distinctstream.pipeline.observability import TransformEvent
from distinctstream.transforms.stream.distinct import (
    DistinctFilter,
    DistinctUntilChangedTransform,
    FilterState,
)
from distinctstream.utils.equality import deep_equal
from tests.unit.transforms.helpers import TrackedSource, make_reading


def _drain(iterator):
    """Collect values until the iterator finishes or raises; return (values, error)."""
    values = []
    try:
        for value in iterator:
            values.append(value)
    except Exception as exc:
        return values, exc
    return values, None


def test_repeated_value_is_emitted_once():
    transform = DistinctUntilChangedTransform()
    out = list(transform.apply(["a"] * 6))
    assert out == ["a"]


def test_distinguishes_strings_and_numbers():
    transform = DistinctUntilChangedTransform()
    assert list(transform.apply(list("aaabba"))) == ["a", "b", "a"]
    assert list(transform.apply([1, 1, 1, 2, 2, 1])) == [1, 2, 1]


def test_all_distinct_values_pass_through_in_order():
    transform = DistinctUntilChangedTransform()
    values = list("abcdef")
    assert list(transform.apply(values)) == values


def test_empty_source_completes_without_values():
    transform = DistinctUntilChangedTransform()
    assert list(transform.apply([])) == []


def test_deeply_equal_nested_objects_are_duplicates():
    a = {1: {"john": "john"}}
    b = {1: {"john": "john"}}
    transform = DistinctUntilChangedTransform()

    out = list(transform.apply([a, a, a, b, b, a]))

    assert len(out) == 1
    assert out[0] is a


def test_nested_objects_with_lists():
    a = {1: {"john": ["john"]}}
    b = {1: {"john": ["john"]}}
    c = {"harry": "harry", 1: {"john": ["john"]}}
    transform = DistinctUntilChangedTransform()

    out = list(transform.apply([a, c, a, b, b, a, b, c]))

    assert len(out) == 4
    assert out[0] is a and out[1] is c and out[2] is a and out[3] is c


def test_records_compare_by_payload():
    stream = [
        make_reading("temp", 0, value=1.0),
        make_reading("temp", 0, value=1.0),
        make_reading("temp", 0, value=2.0),
    ]
    out = list(DistinctUntilChangedTransform()(stream))
    assert [r.payload["value"] for r in out] == [1.0, 2.0]


def test_comparator_overrides_default_equality():
    transform = DistinctUntilChangedTransform(compare=lambda x, y: y % 2 == 0)
    assert list(transform.apply([1, 2, 3, 4, 5, 6])) == [1, 3, 5]


def test_comparator_always_true_emits_first_only():
    transform = DistinctUntilChangedTransform(compare=lambda x, y: True)
    assert list(transform.apply(list("abcdef"))) == ["a"]


def test_comparator_always_false_emits_everything():
    transform = DistinctUntilChangedTransform(compare=lambda x, y: False)
    assert list(transform.apply(["a"] * 6)) == ["a"] * 6


def test_key_selector_projects_before_comparing():
    transform = DistinctUntilChangedTransform(
        compare=lambda x, y: y % 2 == 1,
        key_selector=lambda x: x % 2,
    )
    assert list(transform.apply([1, 2, 3, 4, 5, 6])) == [1, 2, 4, 6]


def test_comparator_receives_a_copy_of_the_previous_key():
    mock = {"1": 1}
    calls = []

    def compare(previous, current):
        calls.append((previous, current))
        assert previous is not current
        return deep_equal(previous, current)

    transform = DistinctUntilChangedTransform(compare=compare)
    out = list(transform.apply([mock, mock, "goose", mock]))

    assert out == [mock, "goose", mock]
    first_previous, first_current = calls[0]
    assert first_previous is not mock
    assert first_previous == mock
    assert first_current is mock


def test_mutating_an_emitted_value_does_not_move_the_baseline():
    state = {"n": 1}

    def source():
        yield state
        state["n"] = 2
        yield state
        yield state

    out = list(DistinctUntilChangedTransform().apply(source()))

    # Second yield differs from the snapshot taken at acceptance time.
    assert len(out) == 2


def test_comparator_error_is_propagated_after_accepted_values():
    def compare(x, y):
        if y == "d":
            raise ValueError("bad comparison")
        return x == y

    source = TrackedSource(list("abcdef"))
    values, error = _drain(DistinctUntilChangedTransform(compare=compare).apply(source))

    assert values == ["a", "b", "c"]
    assert isinstance(error, ValueError)
    assert str(error) == "bad comparison"
    assert source.pulled == 4
    assert source.closed


def test_key_selector_error_is_propagated_after_accepted_values():
    def key_selector(x):
        if x == "d":
            raise KeyError("d")
        return x

    source = TrackedSource(list("abcdef"))
    gen = DistinctUntilChangedTransform(key_selector=key_selector).apply(source)
    values, error = _drain(gen)

    assert values == ["a", "b", "c"]
    assert isinstance(error, KeyError)
    assert source.closed
    with pytest.raises(StopIteration):
        next(gen)


def test_upstream_error_is_forwarded_unchanged():
    boom = RuntimeError("source down")
    source = TrackedSource(["a", "a", "b"], fail_at=2, error=boom)

    values, error = _drain(DistinctUntilChangedTransform().apply(source))

    assert values == ["a"]
    assert error is boom
    assert not source.closed


def test_closing_the_stream_closes_upstream():
    source = TrackedSource(list("abbdaf"))
    gen = DistinctUntilChangedTransform().apply(source)

    assert next(gen) == "a"
    assert next(gen) == "b"
    gen.close()

    assert source.closed
    with pytest.raises(StopIteration):
        next(gen)


def test_each_apply_call_has_its_own_state():
    transform = DistinctUntilChangedTransform()
    first = transform.apply(["x", "y"])
    second = transform.apply(["y", "y"])

    assert next(first) == "x"
    assert list(second) == ["y"]
    assert list(first) == ["y"]


def test_observer_receives_summary():
    events: list[TransformEvent] = []
    transform = DistinctUntilChangedTransform()
    transform.set_observer(events.append)

    list(transform.apply([1, 1, 2, 2, 2, 3]))

    assert len(events) == 1
    assert events[0].type == "distinct_summary"
    assert events[0].payload == {"reason": "completed", "accepted": 3, "dropped": 3}


def test_import_spec_strings_are_resolved():
    transform = DistinctUntilChangedTransform(compare="operator:eq")
    assert list(transform.apply([1, 1, 2])) == [1, 2]


def test_non_callable_comparator_is_rejected():
    with pytest.raises(ValueError):
        DistinctUntilChangedTransform(compare=5)


def test_filter_state_transitions():
    step = DistinctFilter()
    assert step.state is FilterState.AWAITING_FIRST

    key = {"a": [1]}
    assert step.push(key) is True
    assert step.state is FilterState.HAS_BASELINE
    assert step.retained_key == key
    assert step.retained_key is not key

    assert step.push({"a": [1]}) is False
    assert step.push({"a": [2]}) is True

    step.terminate()
    assert step.state is FilterState.TERMINATED
    assert step.retained_key is None
    assert step.push({"a": [3]}) is False


def test_filter_terminates_on_key_selector_failure():
    step = DistinctFilter(key_selector=lambda value: value["missing"])

    with pytest.raises(KeyError):
        step.push({})

    assert step.state is FilterState.TERMINATED
    assert step.push({"missing": 1}) is False


def test_filter_rejects_non_callable_arguments():
    with pytest.raises(TypeError):
        DistinctFilter(compare="not callable")
    with pytest.raises(TypeError):
        DistinctFilter(key_selector=3)


def test_strict_filter_snapshots_container_attributes():
    class Tagged(list):
        pass

    key = Tagged([1])
    key.label = "meta"
    step = DistinctFilter(strict=True)
    step.push(key)

    assert step.retained_key.label == "meta"
    assert step.retained_key is not key


def test_read_only_mapping_keys_are_snapshotted():
    class FrozenMap(Mapping):
        def __init__(self, data):
            self._data = dict(data)

        def __getitem__(self, key):
            return self._data[key]

        def __iter__(self):
            return iter(self._data)

        def __len__(self):
            return len(self._data)

    first = FrozenMap({"a": 1})
    out = list(DistinctUntilChangedTransform().apply([first, FrozenMap({"a": 1}), FrozenMap({"a": 2})]))

    assert len(out) == 2
    assert out[0] is first


def test_filter_uses_copy_options_from_config():
    class Tagged(list):
        pass

    key = Tagged([1])
    key.label = "meta"
    config = DistinctConfig(strict=True)
    step = DistinctFilter(config.compare, config.key_selector, copy_options=config.copy_options)
    step.push(key)

    assert config.copy_options == CopyOptions(is_strict=True)
    assert step.retained_key.label == "meta"
