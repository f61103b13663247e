"""In-process registry of named live charts served over HTTP."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from metricslive.chart import TelemetryChart
from metricslive.config import ChartOptions
from metricslive.contracts.error import PolicyError
from metricslive.core.ticker import TimerFactory
from metricslive.surface import RecordingSurface

logger = logging.getLogger("metricslive.service")


class ChartRegistry:
    """Owns every chart and its headless surface; not thread-safe.

    All calls are expected on the event loop thread that also runs the
    charts' flush timers.
    """

    def __init__(self, *, ticker_factory: TimerFactory | None = None) -> None:
        self._charts: dict[str, TelemetryChart] = {}
        self._surfaces: dict[str, RecordingSurface] = {}
        self._ticker_factory = ticker_factory

    def __contains__(self, name: object) -> bool:
        return name in self._charts

    def __len__(self) -> int:
        return len(self._charts)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._charts))

    def create(self, name: str, options: ChartOptions) -> TelemetryChart:
        if name in self._charts:
            raise PolicyError(f"Chart {name!r} already exists")
        surface = RecordingSurface(TelemetryChart.get_config(options))
        chart = TelemetryChart(surface, options, ticker_factory=self._ticker_factory)
        self._charts[name] = chart
        self._surfaces[name] = surface
        logger.info("Registered chart %s (metric=%s, tagged=%s)", name, options.metric, options.tagged)
        return chart

    def get(self, name: str) -> TelemetryChart:
        return self._charts[name]

    def surface(self, name: str) -> RecordingSurface:
        return self._surfaces[name]

    def remove(self, name: str) -> int:
        chart = self._charts.pop(name)
        self._surfaces.pop(name, None)
        discarded = chart.teardown()
        logger.info("Removed chart %s", name)
        return discarded

    def charts(self) -> dict[str, TelemetryChart]:
        return dict(self._charts)

    def shutdown(self) -> None:
        for name in list(self._charts):
            self.remove(name)


__all__ = ["ChartRegistry"]
