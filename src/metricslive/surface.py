"""Rendering-surface contract and an in-memory implementation."""

from __future__ import annotations

import copy
from collections.abc import Sequence
from typing import Any, Optional, Protocol

from .config import ChartOptions

Columns = Sequence[Sequence[Optional[float]]]


class ChartSurface(Protocol):
    """What a chart widget must accept from :class:`~metricslive.chart.TelemetryChart`."""

    def add_series(self, config: dict[str, Any], index: int) -> None: ...

    def remove_series(self, index: int) -> None: ...

    def set_data(self, columns: Columns) -> None: ...

    def set_size(self, dimensions: dict[str, int]) -> None: ...


def series_config(options: ChartOptions, label: str, index: int = 0) -> dict[str, Any]:
    config: dict[str, Any] = {"label": label, "span_gaps": True, "index": index}
    if options.unit:
        config["unit"] = options.unit
    return config


SUMMARY_BANDS: tuple[str, ...] = ("Min", "Max", "Avg")
_BAND_FILL = "rgba(0, 0, 0, .07)"


def has_bands(options: ChartOptions) -> bool:
    return options.metric == "summary"


def band_configs(options: ChartOptions, label: str) -> list[dict[str, Any]]:
    """Min/Max bands and the dashed Avg line drawn after a summary series."""

    configs: list[dict[str, Any]] = []
    for band in SUMMARY_BANDS:
        config: dict[str, Any] = {
            "label": f"{label} {band}" if options.tagged else band,
            "fill": _BAND_FILL,
            "span_gaps": True,
        }
        if band == "Avg":
            config.update({"stroke": "red", "dash": [10, 10]})
        else:
            config.update({"band": True, "width": 0, "show": False})
        if options.unit:
            config["unit"] = options.unit
        configs.append(config)
    return configs


def build_chart_config(options: ChartOptions) -> dict[str, Any]:
    """Initial widget config: the timeline entry plus one placeholder series.

    Summary charts also carry the placeholder's Min, Max and Avg series.
    """

    series: list[dict[str, Any]] = [{}, series_config(options, options.label, 0)]
    if has_bands(options):
        series.extend(band_configs(options, options.label))
    config: dict[str, Any] = {
        "class": options.metric,
        "title": options.title,
        "width": options.width,
        "height": options.height,
        "series": series,
    }
    return config


class RecordingSurface:
    """Headless surface that mirrors the widget's series list and last frame."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = copy.deepcopy(config) if config is not None else {"series": [{}]}
        self.series: list[dict[str, Any]] = list(self.config.get("series", [{}]))
        self.columns: list[list[Optional[float]]] = []
        self.set_data_calls = 0
        self.size: dict[str, int] | None = None

    def add_series(self, config: dict[str, Any], index: int) -> None:
        if index <= 0 or index > len(self.series):
            raise IndexError(f"Cannot add series at index {index}")
        self.series.insert(index, dict(config))

    def remove_series(self, index: int) -> None:
        if index <= 0 or index >= len(self.series):
            raise IndexError(f"No series at index {index}")
        del self.series[index]

    def set_data(self, columns: Columns) -> None:
        self.columns = [list(column) for column in columns]
        self.set_data_calls += 1

    def set_size(self, dimensions: dict[str, int]) -> None:
        self.size = dict(dimensions)

    @property
    def labels(self) -> list[str]:
        return [str(entry.get("label", "")) for entry in self.series[1:]]


__all__ = [
    "ChartSurface",
    "Columns",
    "RecordingSurface",
    "SUMMARY_BANDS",
    "band_configs",
    "build_chart_config",
    "has_bands",
    "series_config",
]
