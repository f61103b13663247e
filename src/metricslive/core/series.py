"""Shared timeline plus an arena of raw and derived series."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Optional

from metricslive.contracts.error import BadInputError, InvariantError

logger = logging.getLogger("metricslive")

Column = list[Optional[float]]


def last_non_null(values: Column) -> float | None:
    for value in reversed(values):
        if value is not None:
            return value
    return None


@dataclass
class Aggregate:
    total: float = 0.0
    count: int = 0
    running_min: Column = field(default_factory=list)
    running_max: Column = field(default_factory=list)
    running_avg: Column = field(default_factory=list)


@dataclass
class Extrema:
    min: float | None = None
    max: float | None = None


@dataclass
class Derivation:
    source_index: int
    mode: str
    raw_history: Column = field(default_factory=list)


@dataclass
class Series:
    key: str
    data: Column = field(default_factory=list)
    aggregate: Aggregate = field(default_factory=Aggregate)
    last: Extrema = field(default_factory=Extrema)
    derivation: Derivation | None = None
    # Survives pruning so counter and sum projections keep accumulating.
    last_plotted: float | None = None

    @property
    def is_derived(self) -> bool:
        return self.derivation is not None

    def positional_columns(self) -> list[Column]:
        columns = [
            self.data,
            self.aggregate.running_min,
            self.aggregate.running_max,
            self.aggregate.running_avg,
        ]
        if self.derivation is not None:
            columns.append(self.derivation.raw_history)
        return columns

    def backfill(self, length: int) -> None:
        for column in self.positional_columns():
            column.extend([None] * length)

    def record(self, plotted: float, observed: float) -> None:
        """Push a real value and fold ``observed`` into the running aggregates."""

        agg = self.aggregate
        agg.count += 1
        agg.total += observed
        self.last.min = observed if self.last.min is None else min(self.last.min, observed)
        self.last.max = observed if self.last.max is None else max(self.last.max, observed)
        self.data.append(plotted)
        self.last_plotted = plotted
        agg.running_min.append(self.last.min)
        agg.running_max.append(self.last.max)
        agg.running_avg.append(agg.total / agg.count)

    def pad(self) -> None:
        """Push a "no value" marker to ``data`` and the aggregate arrays."""

        self.data.append(None)
        self.aggregate.running_min.append(None)
        self.aggregate.running_max.append(None)
        self.aggregate.running_avg.append(None)

    def describe(self) -> dict[str, Any]:
        agg = self.aggregate
        payload: dict[str, Any] = {
            "key": self.key,
            "kind": "derived" if self.derivation is not None else "raw",
            "count": agg.count,
            "total": agg.total,
            "min": self.last.min,
            "max": self.last.max,
            "avg": (agg.total / agg.count) if agg.count else None,
            "last": self.last_plotted,
        }
        if self.derivation is not None:
            payload["source_index"] = self.derivation.source_index
            payload["mode"] = self.derivation.mode
        return payload


SeriesAddedCallback = Callable[[int, Series], None]


class SeriesStore:
    """Timeline plus series arena; index ``0`` always names the timeline."""

    def __init__(self, on_series_added: SeriesAddedCallback | None = None) -> None:
        self.timeline: list[float] = []
        self._series: list[Series] = []
        self._index: dict[str, int] = {}
        self.on_series_added = on_series_added

    def __len__(self) -> int:
        return len(self.timeline)

    def __iter__(self) -> Iterator[tuple[int, Series]]:
        for offset, series in enumerate(self._series):
            yield offset + 1, series

    @property
    def series_count(self) -> int:
        return len(self._series)

    def index_of(self, label: str) -> int | None:
        return self._index.get(label)

    def series_at(self, index: int) -> Series:
        if index <= 0 or index > len(self._series):
            raise IndexError(f"No series at index {index}")
        return self._series[index - 1]

    def derived_of(self, source_index: int) -> list[int]:
        return [
            index
            for index, series in self
            if series.derivation is not None and series.derivation.source_index == source_index
        ]

    def find_or_create(
        self, label: str, source_index: int | None = None, mode: str | None = None
    ) -> int:
        existing = self._index.get(label)
        if existing is not None:
            series = self._series[existing - 1]
            derivation = series.derivation
            if source_index is None and derivation is not None:
                raise BadInputError(f"Label {label!r} already names a derived series")
            if source_index is not None and (
                derivation is None
                or derivation.source_index != source_index
                or derivation.mode != mode
            ):
                raise BadInputError(f"Label {label!r} already names a different series")
            return existing

        if source_index is not None:
            if mode is None:
                raise InvariantError(f"Derived series {label!r} needs a derive mode")
            source = self.series_at(source_index)
            if source.is_derived:
                raise InvariantError(
                    f"Derived series {label!r} must source a raw series, not {source.key!r}"
                )
            series = Series(key=label, derivation=Derivation(source_index=source_index, mode=mode))
        else:
            series = Series(key=label)
        series.backfill(len(self.timeline))
        self._series.append(series)
        index = len(self._series)
        self._index[label] = index
        logger.debug("Created series %r at index %d (backfill=%d)", label, index, len(self.timeline))
        if self.on_series_added is not None:
            self.on_series_added(index, series)
        return index

    def advance(self, timestamp: float) -> None:
        self.timeline.append(timestamp)

    def columns(self) -> list[Column]:
        columns: list[Column] = [list(self.timeline)]
        columns.extend(list(series.data) for series in self._series)
        return columns

    def check_alignment(self) -> None:
        expected = len(self.timeline)
        for index, series in self:
            for column in series.positional_columns():
                if len(column) != expected:
                    raise InvariantError(
                        f"Series {series.key!r} (index {index}) has {len(column)} entries; "
                        f"timeline has {expected}"
                    )

    def clear(self) -> None:
        self.timeline.clear()
        self._series.clear()
        self._index.clear()


__all__ = [
    "Aggregate",
    "Column",
    "Derivation",
    "Extrema",
    "Series",
    "SeriesStore",
    "last_non_null",
]
