from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from metricslive.contracts.error import BadInputError, IOErrorEnvelope
from metricslive.core.measurement import Measurement

from .constants import MEASUREMENT_SCHEMA, METRIC_PREFIX

if TYPE_CHECKING:  # pragma: no cover
    from metricslive.chart import TelemetryChart

logger = logging.getLogger("metricslive")


def parse_measurement_line(line: str) -> Optional[Measurement]:
    if not line.strip():
        return None
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Ignored invalid measurement line: %s", line.strip())
        return None
    if not isinstance(payload, dict):
        return None
    schema = payload.get("schema")
    if schema not in (None, MEASUREMENT_SCHEMA):
        logger.debug("Skipping measurement with schema=%s", schema)
        return None
    try:
        return Measurement.from_payload(payload)
    except BadInputError as exc:
        logger.debug("Skipping malformed measurement %s: %s", line.strip(), exc)
        return None


def iter_measurement_file(path: Path) -> Iterator[Measurement]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            for line in fh:
                measurement = parse_measurement_line(line)
                if measurement is not None:
                    yield measurement
    except FileNotFoundError as exc:
        raise IOErrorEnvelope(f"Measurement source not found: {path}") from exc


def iter_measurement_batches(path: Path, batch_size: int) -> Iterator[list[Measurement]]:
    if batch_size <= 0:
        raise BadInputError("batch size must be > 0")
    batch: list[Measurement] = []
    for measurement in iter_measurement_file(path):
        batch.append(measurement)
        if len(batch) >= batch_size:
            yield batch
            batch = []
    if batch:
        yield batch


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def format_sample_value(value: Optional[float]) -> str:
    if value is None or math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:.6f}"


def render_prometheus(charts: Mapping[str, "TelemetryChart"]) -> str:
    """Render per-series aggregates for every chart in Prometheus text format."""

    p = METRIC_PREFIX
    lines = [
        f"# HELP {p}_charts Live charts registered",
        f"# TYPE {p}_charts gauge",
        f"{p}_charts {len(charts)}",
    ]
    if not charts:
        return "\n".join(lines) + "\n"

    lines.append(f"# HELP {p}_timeline_length Retained timeline positions per chart")
    lines.append(f"# TYPE {p}_timeline_length gauge")
    for name in sorted(charts):
        chart = charts[name]
        lines.append(f'{p}_timeline_length{{chart="{_escape_label(name)}"}} {len(chart.store)}')

    lines.append(f"# HELP {p}_buffered_measurements Measurements waiting for the next tick")
    lines.append(f"# TYPE {p}_buffered_measurements gauge")
    for name in sorted(charts):
        buffer = charts[name].buffer
        pending = len(buffer) if buffer is not None else 0
        lines.append(f'{p}_buffered_measurements{{chart="{_escape_label(name)}"}} {pending}')

    gauges = (
        ("total", "Lifetime sum of observed values", lambda d: d["total"]),
        ("min", "Running minimum within the retained window", lambda d: d["min"]),
        ("max", "Running maximum within the retained window", lambda d: d["max"]),
        ("avg", "Lifetime average of observed values", lambda d: d["avg"]),
    )
    described = {
        name: [(series.key, series.describe()) for _index, series in charts[name].store]
        for name in sorted(charts)
    }

    lines.append(f"# HELP {p}_series_count Values recorded per series")
    lines.append(f"# TYPE {p}_series_count counter")
    for name, rows in described.items():
        for key, packet in rows:
            labels = f'chart="{_escape_label(name)}",series="{_escape_label(key)}"'
            lines.append(f"{p}_series_count{{{labels}}} {packet['count']}")

    for suffix, help_text, pick in gauges:
        lines.append(f"# HELP {p}_series_{suffix} {help_text}")
        lines.append(f"# TYPE {p}_series_{suffix} gauge")
        for name, rows in described.items():
            for key, packet in rows:
                labels = f'chart="{_escape_label(name)}",series="{_escape_label(key)}"'
                lines.append(f"{p}_series_{suffix}{{{labels}}} {format_sample_value(pick(packet))}")

    return "\n".join(lines) + "\n"


__all__ = [
    "format_sample_value",
    "iter_measurement_batches",
    "iter_measurement_file",
    "parse_measurement_line",
    "render_prometheus",
]
