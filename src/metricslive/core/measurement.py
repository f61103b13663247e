from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from metricslive.contracts.error import BadInputError

_TAG_KEYS = ("tag", "x")
_VALUE_KEYS = ("value", "y")
_TIMESTAMP_KEYS = ("timestamp", "z")


def _first_present(payload: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def coerce_timestamp(raw: Any) -> float:
    """Return epoch seconds for a numeric or ISO-8601 timestamp."""

    if isinstance(raw, bool):
        raise BadInputError(f"Invalid timestamp {raw!r}")
    if isinstance(raw, (int, float)):
        ts = float(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        try:
            ts = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError as exc:
                raise BadInputError(f"Invalid timestamp {raw!r}") from exc
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=UTC)
            ts = parsed.timestamp()
    else:
        raise BadInputError(f"Invalid timestamp {raw!r}")
    if not math.isfinite(ts):
        raise BadInputError(f"Timestamp must be finite; got {raw!r}")
    return ts


def coerce_value(raw: Any) -> float:
    if isinstance(raw, bool) or raw is None:
        raise BadInputError(f"Invalid measurement value {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise BadInputError(f"Invalid measurement value {raw!r}") from exc
    if not math.isfinite(value):
        raise BadInputError(f"Measurement value must be finite; got {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class Measurement:
    """One tagged sample: ``value`` observed at ``timestamp`` (epoch seconds)."""

    tag: str
    value: float
    timestamp: float

    def validate(self) -> Measurement:
        """Return a copy with ``value`` and ``timestamp`` coerced to floats."""

        if not isinstance(self.tag, str):
            raise BadInputError(f"Measurement tag must be a string; got {self.tag!r}")
        return Measurement(
            tag=self.tag,
            value=coerce_value(self.value),
            timestamp=coerce_timestamp(self.timestamp),
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Measurement:
        """Build a measurement from ``tag/value/timestamp`` or ``x/y/z`` keys."""

        if not isinstance(payload, Mapping):
            raise BadInputError("Measurement payload must be an object")
        raw_value = _first_present(payload, _VALUE_KEYS)
        raw_ts = _first_present(payload, _TIMESTAMP_KEYS)
        if raw_value is None:
            raise BadInputError("Measurement payload is missing 'value'")
        if raw_ts is None:
            raise BadInputError("Measurement payload is missing 'timestamp'")
        raw_tag = _first_present(payload, _TAG_KEYS)
        tag = "" if raw_tag is None else str(raw_tag)
        return cls(tag=tag, value=coerce_value(raw_value), timestamp=coerce_timestamp(raw_ts))

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "value": self.value, "timestamp": self.timestamp}


__all__ = ["Measurement", "coerce_timestamp", "coerce_value"]
