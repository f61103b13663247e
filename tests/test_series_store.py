from __future__ import annotations

import pytest

from metricslive.contracts.error import BadInputError, InvariantError
from metricslive.core.series import Series, SeriesStore, last_non_null


def test_index_zero_is_reserved_for_the_timeline() -> None:
    store = SeriesStore()
    assert store.find_or_create("a") == 1
    assert store.find_or_create("b") == 2
    assert store.find_or_create("a") == 1
    assert store.series_count == 2
    with pytest.raises(IndexError):
        store.series_at(0)


def test_new_series_are_backfilled_to_the_timeline() -> None:
    store = SeriesStore()
    store.advance(1.0)
    store.advance(2.0)
    index = store.find_or_create("late")
    series = store.series_at(index)
    assert series.data == [None, None]
    assert series.aggregate.running_min == [None, None]
    assert series.aggregate.running_max == [None, None]
    assert series.aggregate.running_avg == [None, None]
    store.check_alignment()


def test_derived_series_track_raw_history() -> None:
    store = SeriesStore()
    raw = store.find_or_create("cpu")
    store.advance(1.0)
    store.series_at(raw).record(1.0, 1.0)
    derived = store.find_or_create("cpu p50", raw, "p50")
    series = store.series_at(derived)
    assert series.is_derived
    assert series.derivation is not None
    assert series.derivation.raw_history == [None]
    assert store.derived_of(raw) == [derived]
    assert store.derived_of(derived) == []


def test_role_mismatch_is_bad_input() -> None:
    store = SeriesStore()
    raw = store.find_or_create("cpu")
    store.find_or_create("cpu mean", raw, "mean")
    with pytest.raises(BadInputError):
        store.find_or_create("cpu mean")
    with pytest.raises(BadInputError):
        store.find_or_create("cpu mean", raw, "p50")
    with pytest.raises(BadInputError):
        store.find_or_create("cpu", raw, "p50")


def test_derived_source_must_be_raw() -> None:
    store = SeriesStore()
    raw = store.find_or_create("cpu")
    derived = store.find_or_create("cpu p90", raw, "p90")
    with pytest.raises(InvariantError):
        store.find_or_create("cpu p90 p90", derived, "p90")
    with pytest.raises(InvariantError):
        store.find_or_create("cpu other", raw, None)
    with pytest.raises(IndexError):
        store.find_or_create("ghost p50", 7, "p50")


def test_series_added_callback_receives_index_and_series() -> None:
    seen: list[tuple[int, str]] = []

    def on_added(index: int, series: Series) -> None:
        seen.append((index, series.key))

    store = SeriesStore(on_series_added=on_added)
    store.find_or_create("a")
    store.find_or_create("a")
    store.find_or_create("b")
    assert seen == [(1, "a"), (2, "b")]


def test_columns_are_copies() -> None:
    store = SeriesStore()
    index = store.find_or_create("a")
    store.advance(1.0)
    store.series_at(index).record(5.0, 5.0)
    columns = store.columns()
    assert columns == [[1.0], [5.0]]
    columns[0].append(99.0)
    columns[1][0] = None
    assert store.timeline == [1.0]
    assert store.series_at(index).data == [5.0]


def test_check_alignment_detects_drift() -> None:
    store = SeriesStore()
    index = store.find_or_create("a")
    store.advance(1.0)
    store.series_at(index).pad()
    store.check_alignment()
    store.series_at(index).aggregate.running_avg.append(1.0)
    with pytest.raises(InvariantError, match="'a'"):
        store.check_alignment()


def test_clear_drops_everything() -> None:
    store = SeriesStore()
    store.find_or_create("a")
    store.advance(1.0)
    store.clear()
    assert len(store) == 0
    assert store.series_count == 0
    assert store.index_of("a") is None


def test_last_non_null() -> None:
    assert last_non_null([1.0, None, 3.0, None]) == 3.0
    assert last_non_null([None, None]) is None
    assert last_non_null([]) is None
