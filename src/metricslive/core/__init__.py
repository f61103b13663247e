from .aggregate import PROJECTIONS, AggregationEngine, derived_label
from .buffer import IngestionBuffer
from .derive import (
    DeriveMode,
    derive,
    parse_derive_mode,
    percentile_nearest_rank,
    window_values,
)
from .measurement import Measurement, coerce_timestamp, coerce_value
from .pruner import HistoryPruner
from .series import (
    Aggregate,
    Derivation,
    Extrema,
    Series,
    SeriesStore,
    last_non_null,
)
from .ticker import AsyncioTicker, ManualTicker, PeriodicTimer, TimerFactory

__all__ = [
    "Aggregate",
    "AggregationEngine",
    "AsyncioTicker",
    "Derivation",
    "DeriveMode",
    "Extrema",
    "HistoryPruner",
    "IngestionBuffer",
    "ManualTicker",
    "Measurement",
    "PROJECTIONS",
    "PeriodicTimer",
    "Series",
    "SeriesStore",
    "TimerFactory",
    "coerce_timestamp",
    "coerce_value",
    "derive",
    "derived_label",
    "last_non_null",
    "parse_derive_mode",
    "percentile_nearest_rank",
    "window_values",
]
