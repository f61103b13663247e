"""Windowed derivations (nearest-rank percentile, mean) over raw history."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

logger = logging.getLogger("metricslive")

MEAN_MODE = "mean"
_PERCENTILE_PATTERN = re.compile(r"^p(\d+(?:\.\d+)?)$")


@dataclass(frozen=True, slots=True)
class DeriveMode:
    token: str
    kind: str
    percent: Fraction | None = None


def parse_derive_mode(token: str) -> DeriveMode | None:
    """Return the parsed mode for ``token`` or ``None`` when it is not recognised."""

    normalized = token.strip().lower()
    if normalized == MEAN_MODE:
        return DeriveMode(token=normalized, kind=MEAN_MODE)
    match = _PERCENTILE_PATTERN.match(normalized)
    if match is None:
        return None
    percent = Fraction(match.group(1))
    if percent > 100:
        return None
    return DeriveMode(token=normalized, kind="percentile", percent=percent)


def percentile_nearest_rank(values: Sequence[float], percent: Fraction | float) -> float | None:
    if not values:
        return None
    data = sorted(values)
    last = len(data) - 1
    exact = percent if isinstance(percent, Fraction) else Fraction(str(percent))
    idx = math.floor(exact / 100 * last)
    idx = min(last, max(0, idx))
    return data[idx]


def window_values(
    raw_history: Sequence[Optional[float]],
    timeline: Sequence[float],
    current_timestamp: float,
    window_seconds: float,
) -> list[float]:
    """Non-null samples whose timestamp is within ``[current - window, ...]``."""

    lower = current_timestamp - window_seconds
    return [
        value
        for ts, value in zip(timeline, raw_history)
        if value is not None and ts >= lower
    ]


def derive(
    raw_history: Sequence[Optional[float]],
    timeline: Sequence[float],
    mode: str,
    current_timestamp: float,
    window_seconds: float,
) -> float | None:
    parsed = parse_derive_mode(mode)
    if parsed is None:
        logger.warning("Unknown derive mode %r; leaving derived value unset", mode)
        return None
    values = window_values(raw_history, timeline, current_timestamp, window_seconds)
    if not values:
        return None
    if parsed.kind == MEAN_MODE:
        return math.fsum(values) / len(values)
    return percentile_nearest_rank(values, parsed.percent or Fraction(0))


__all__ = [
    "DeriveMode",
    "MEAN_MODE",
    "derive",
    "parse_derive_mode",
    "percentile_nearest_rank",
    "window_values",
]
