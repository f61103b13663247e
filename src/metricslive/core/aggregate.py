"""Measurement ingestion: projections, running aggregates, lazy series creation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from metricslive.config import METRIC_KINDS, ChartOptions
from metricslive.contracts.error import BadInputError, InvariantError

from .derive import derive
from .measurement import Measurement
from .series import SeriesStore

logger = logging.getLogger("metricslive")

Projection = Callable[[float, float], float]

PROJECTIONS: dict[str, Projection] = {
    "counter": lambda y, prev: prev + 1,
    "last_value": lambda y, prev: y,
    "sum": lambda y, prev: prev + y,
    "summary": lambda y, prev: y,
}


def derived_label(source_label: str, mode: str) -> str:
    return f"{source_label} {mode}"


class AggregationEngine:
    """Apply measurements to a :class:`SeriesStore`, keeping every column aligned."""

    def __init__(self, store: SeriesStore, options: ChartOptions) -> None:
        if options.metric is None:
            raise BadInputError("No metric type was provided")
        projection = PROJECTIONS.get(options.metric)
        if projection is None:
            raise BadInputError(
                f"No metric defined for type {options.metric}",
                hint=f"choose one of: {', '.join(METRIC_KINDS)}",
            )
        self.store = store
        self.options = options
        self._projection = projection
        if not options.tagged:
            self.ensure_series(options.label)

    @property
    def tagged(self) -> bool:
        return self.options.tagged

    def label_for(self, measurement: Measurement) -> str:
        if not self.tagged:
            return self.options.label
        return measurement.tag or self.options.label

    def ensure_series(self, label: str) -> int:
        """Resolve the raw series for ``label``, creating it and its derived series."""

        existing = self.store.index_of(label)
        if existing is not None:
            if self.store.series_at(existing).is_derived:
                raise BadInputError(f"Tag {label!r} collides with a derived series label")
            return existing
        for mode in self.options.derive_modes:
            taken = self.store.index_of(derived_label(label, mode))
            if taken is not None:
                raise BadInputError(
                    f"Derived label {derived_label(label, mode)!r} is already taken"
                )
        raw_index = self.store.find_or_create(label)
        for mode in self.options.derive_modes:
            self.store.find_or_create(derived_label(label, mode), raw_index, mode)
        return raw_index

    def ingest(self, measurement: Measurement) -> None:
        measurement = measurement.validate()
        raw_index = self.ensure_series(self.label_for(measurement))
        store = self.store
        derived = set(store.derived_of(raw_index))
        ts = measurement.timestamp
        value = measurement.value
        window = self.options.derive_window_seconds

        store.advance(ts)
        for index, series in store:
            if index == raw_index:
                previous = 0.0 if series.last_plotted is None else series.last_plotted
                series.record(self._projection(value, previous), value)
            elif index in derived:
                derivation = series.derivation
                if derivation is None:
                    raise InvariantError(f"Series {series.key!r} lost its derivation")
                derivation.raw_history.append(value)
                result = derive(derivation.raw_history, store.timeline, derivation.mode, ts, window)
                if result is None:
                    series.pad()
                else:
                    series.record(result, result)
            else:
                if series.derivation is not None:
                    series.derivation.raw_history.append(None)
                series.pad()

    def ingest_batch(self, measurements: Iterable[Measurement]) -> int:
        """Apply ``measurements`` in order; invalid ones are logged and skipped."""

        applied = 0
        for measurement in measurements:
            try:
                self.ingest(measurement)
            except BadInputError as exc:
                logger.warning("Skipping measurement %r: %s", measurement, exc)
                continue
            applied += 1
        return applied


__all__ = ["AggregationEngine", "PROJECTIONS", "Projection", "derived_label"]
