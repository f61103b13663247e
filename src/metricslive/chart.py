"""Telemetry chart: wires options, engine, pruner, buffer and a rendering surface."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from .config import ChartOptions
from .contracts.error import BadInputError, PolicyError
from .core.aggregate import AggregationEngine
from .core.buffer import IngestionBuffer
from .core.measurement import Measurement
from .core.pruner import HistoryPruner
from .core.series import Series, SeriesStore
from .core.ticker import AsyncioTicker, PeriodicTimer, TimerFactory
from .surface import (
    SUMMARY_BANDS,
    ChartSurface,
    band_configs,
    build_chart_config,
    has_bands,
    series_config,
)

logger = logging.getLogger("metricslive")

MeasurementLike = Union[Measurement, Mapping[str, Any]]


class TelemetryChart:
    """One live chart instance.

    Unbuffered charts apply, prune and render every :meth:`push_data` call.
    When ``options.refresh_interval`` is set, pushes are queued and a periodic
    timer drains them through :meth:`flush`.
    """

    def __init__(
        self,
        surface: ChartSurface,
        options: ChartOptions,
        *,
        ticker_factory: TimerFactory | None = None,
    ) -> None:
        if not options.metric:
            raise BadInputError("No metric type was provided")
        options.validate()
        self.options = options
        self.surface = surface
        # The untagged series is already part of the initial widget config.
        self._preconfigured: set[int] = set() if options.tagged else {1}
        if options.tagged:
            self._drop_placeholder()
        self.store = SeriesStore(on_series_added=self._announce_series)
        self.engine = AggregationEngine(self.store, options)
        self.pruner = HistoryPruner(options.prune_threshold)
        self.buffer: IngestionBuffer | None = IngestionBuffer() if options.buffered else None
        self._ticker: PeriodicTimer | None = None
        self._closed = False
        interval = options.refresh_interval_seconds
        if interval is not None:
            factory: TimerFactory = ticker_factory or AsyncioTicker
            self._ticker = factory(interval, self.flush)
            self._ticker.start()

    @staticmethod
    def get_config(options: ChartOptions) -> dict[str, Any]:
        return build_chart_config(options)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ticker(self) -> PeriodicTimer | None:
        return self._ticker

    def _drop_placeholder(self) -> None:
        width = 1 + (len(SUMMARY_BANDS) if has_bands(self.options) else 0)
        try:
            for _ in range(width):
                self.surface.remove_series(1)
        except IndexError as exc:
            raise BadInputError(
                "Tagged charts need a surface configured with the placeholder series",
                hint="build the surface from TelemetryChart.get_config(options)",
            ) from exc

    def _shows_bands(self, series: Series) -> bool:
        return has_bands(self.options) and not series.is_derived

    def _surface_position(self, index: int) -> int:
        position = 1
        for other_index, series in self.store:
            if other_index >= index:
                break
            position += 1 + (len(SUMMARY_BANDS) if self._shows_bands(series) else 0)
        return position

    def _announce_series(self, index: int, series: Series) -> None:
        if index in self._preconfigured:
            return
        position = self._surface_position(index)
        self.surface.add_series(series_config(self.options, series.key, position - 1), position)
        if self._shows_bands(series):
            for offset, config in enumerate(band_configs(self.options, series.key), start=1):
                self.surface.add_series(config, position + offset)

    def _coerce(self, measurements: Iterable[MeasurementLike]) -> list[Measurement]:
        batch: list[Measurement] = []
        for item in measurements:
            if isinstance(item, Measurement):
                batch.append(item)
                continue
            try:
                batch.append(Measurement.from_payload(item))
            except BadInputError as exc:
                logger.warning("Dropping malformed measurement payload %r: %s", item, exc)
        return batch

    def push_data(self, measurements: Iterable[MeasurementLike]) -> int:
        """Accept a batch; returns how many measurements were applied right away."""

        if self._closed:
            raise PolicyError("Chart has been torn down")
        batch = self._coerce(measurements)
        if not batch:
            return 0
        if self.buffer is not None:
            self.buffer.push(batch)
            return 0
        return self._apply(batch)

    def flush(self) -> int:
        """Drain the buffer and apply it as a single batch (the tick handler)."""

        if self.buffer is None or self._closed:
            return 0
        batch = self.buffer.flush()
        if not batch:
            return 0
        return self._apply(batch)

    def _apply(self, batch: list[Measurement]) -> int:
        applied = self.engine.ingest_batch(batch)
        self.pruner.maybe_prune(self.store)
        self.store.check_alignment()
        self.surface.set_data(self.columns())
        return applied

    def resize(self, width: int, height: int) -> None:
        self.surface.set_size({"width": int(width), "height": int(height)})

    def teardown(self) -> int:
        """Stop the ticker and release all series; returns discarded measurements."""

        if self._closed:
            return 0
        if self._ticker is not None:
            self._ticker.cancel()
        discarded = 0
        if self.buffer is not None and len(self.buffer):
            if self.options.teardown_policy == "flush":
                self.flush()
            else:
                discarded = self.buffer.discard()
                logger.info("Discarded %d buffered measurements on teardown", discarded)
        self._closed = True
        self.store.clear()
        return discarded

    def columns(self) -> list[list[Optional[float]]]:
        """The rendered frame: timeline, then each series with its summary bands."""

        frame: list[list[Optional[float]]] = [list(self.store.timeline)]
        for _index, series in self.store:
            frame.append(list(series.data))
            if self._shows_bands(series):
                agg = series.aggregate
                frame.extend(
                    [list(agg.running_min), list(agg.running_max), list(agg.running_avg)]
                )
        return frame

    def labels(self) -> list[str]:
        labels: list[str] = []
        for _index, series in self.store:
            labels.append(series.key)
            if self._shows_bands(series):
                labels.extend(config["label"] for config in band_configs(self.options, series.key))
        return labels

    def snapshot(self) -> dict[str, Any]:
        return {
            "metric": self.options.metric,
            "tagged": self.options.tagged,
            "label": self.options.label,
            "unit": self.options.unit,
            "timeline_length": len(self.store),
            "buffered": len(self.buffer) if self.buffer is not None else 0,
            "prunes": self.pruner.prunes,
            "closed": self._closed,
            "series": [{"index": index, **series.describe()} for index, series in self.store],
        }


__all__ = ["MeasurementLike", "TelemetryChart"]
