"""HTTP surface for registering live charts and pushing measurements."""

from .api import create_app, serve
from .models import (
    ChartCreateRequest,
    ChartListResponse,
    ChartSnapshot,
    ColumnsResponse,
    FlushResponse,
    IngestResponse,
    MeasurementBatch,
    MeasurementModel,
    SeriesSummary,
)
from .registry import ChartRegistry

__all__ = [
    "create_app",
    "serve",
    "ChartRegistry",
    "ChartCreateRequest",
    "ChartListResponse",
    "ChartSnapshot",
    "ColumnsResponse",
    "FlushResponse",
    "IngestResponse",
    "MeasurementBatch",
    "MeasurementModel",
    "SeriesSummary",
]
