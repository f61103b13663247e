from __future__ import annotations

"""Shared constants for measurement streams and the service surface."""

SCHEMA_VERSION = "v1"

MEASUREMENT_SCHEMA = f"measurement.{SCHEMA_VERSION}"

TOKEN_ENV_VAR = "_".join(("METRICSLIVE", "TOKEN"))
AUTH_HEADER = "Authorization"
PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"
METRIC_PREFIX = "metricslive"

__all__ = [
    "SCHEMA_VERSION",
    "MEASUREMENT_SCHEMA",
    "TOKEN_ENV_VAR",
    "AUTH_HEADER",
    "PROMETHEUS_CONTENT_TYPE",
    "METRIC_PREFIX",
]
