"""Measurement streams, schema validation and Prometheus exposition."""

from .constants import (
    AUTH_HEADER,
    MEASUREMENT_SCHEMA,
    METRIC_PREFIX,
    PROMETHEUS_CONTENT_TYPE,
    SCHEMA_VERSION,
    TOKEN_ENV_VAR,
)
from .core import (
    format_sample_value,
    iter_measurement_batches,
    iter_measurement_file,
    parse_measurement_line,
    render_prometheus,
)

__all__ = [
    "AUTH_HEADER",
    "MEASUREMENT_SCHEMA",
    "METRIC_PREFIX",
    "PROMETHEUS_CONTENT_TYPE",
    "SCHEMA_VERSION",
    "TOKEN_ENV_VAR",
    "format_sample_value",
    "iter_measurement_batches",
    "iter_measurement_file",
    "parse_measurement_line",
    "render_prometheus",
]
