"""Streaming aggregation engine for live telemetry charts."""

from . import contracts, core, metrics
from .chart import TelemetryChart
from .config import AppConfig, ChartOptions, load_app_config
from .core.measurement import Measurement
from .surface import ChartSurface, RecordingSurface, build_chart_config

__all__ = [
    "AppConfig",
    "ChartOptions",
    "ChartSurface",
    "Measurement",
    "RecordingSurface",
    "TelemetryChart",
    "build_chart_config",
    "contracts",
    "core",
    "load_app_config",
    "metrics",
]
