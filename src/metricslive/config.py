"""Typed configuration for live telemetry charts."""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .contracts.error import BadInputError

METRIC_KINDS: tuple[str, ...] = ("counter", "last_value", "sum", "summary")
TEARDOWN_POLICIES: tuple[str, ...] = ("drop", "flush")

DEFAULT_LABEL = "value"
DEFAULT_PRUNE_THRESHOLD = 1000
DEFAULT_DERIVE_WINDOW_SECONDS = 120.0
DEFAULT_HEIGHT = 300

_TRUE_TOKENS = {"1", "true", "yes", "on"}
_FALSE_TOKENS = {"0", "false", "no", "off", ""}
_MODE_SPLIT = re.compile(r"[\s,;|]+")

# Widget data attributes arrive camelCased.
_OPTION_ALIASES = {
    "pruneThreshold": "prune_threshold",
    "deriveModes": "derive_modes",
    "deriveWindowSeconds": "derive_window_seconds",
    "refreshInterval": "refresh_interval",
    "teardownPolicy": "teardown_policy",
}


def parse_bool(value: Any, *, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_TOKENS:
            return True
        if normalized in _FALSE_TOKENS:
            return False
        raise BadInputError(f"{name} must be boolean")
    if isinstance(value, (int, float)):
        return bool(value)
    raise BadInputError(f"{name} must be boolean")


def parse_derive_modes(raw: Any) -> tuple[str, ...]:
    """Split a delimiter-separated list (or iterable) of derive-mode tokens."""

    if raw is None:
        return ()
    if isinstance(raw, str):
        tokens: Iterable[Any] = _MODE_SPLIT.split(raw)
    elif isinstance(raw, Iterable):
        tokens = raw
    else:
        raise BadInputError("derive_modes must be a string or a list of strings")
    modes: list[str] = []
    for token in tokens:
        if not isinstance(token, str):
            raise BadInputError(f"derive mode must be a string; got {token!r}")
        cleaned = token.strip().lower()
        if cleaned and cleaned not in modes:
            modes.append(cleaned)
    return tuple(modes)


def _optional_number(value: Any, *, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in {"", "none", "null", "off"}:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise BadInputError(f"{name} must be a number") from exc


@dataclass
class ChartOptions:
    metric: str | None = None
    tagged: bool = False
    label: str = DEFAULT_LABEL
    unit: str | None = None
    title: str | None = None
    width: int | None = None
    height: int = DEFAULT_HEIGHT
    prune_threshold: int = DEFAULT_PRUNE_THRESHOLD
    derive_modes: tuple[str, ...] = ()
    derive_window_seconds: float = DEFAULT_DERIVE_WINDOW_SECONDS
    refresh_interval: float | None = None
    teardown_policy: str = "drop"

    @property
    def buffered(self) -> bool:
        return self.refresh_interval is not None

    @property
    def refresh_interval_seconds(self) -> float | None:
        if self.refresh_interval is None:
            return None
        return self.refresh_interval / 1000.0

    def validate(self) -> None:
        """Check every option except metric presence, which the chart enforces."""

        if self.metric is not None and self.metric not in METRIC_KINDS:
            raise BadInputError(
                f"No metric defined for type {self.metric}",
                hint=f"choose one of: {', '.join(METRIC_KINDS)}",
            )
        if not isinstance(self.label, str):
            raise BadInputError(f"chart.label must be a string; got {self.label!r}")
        if not self.label.strip():
            raise BadInputError("chart.label must not be blank")
        if isinstance(self.prune_threshold, bool) or not isinstance(self.prune_threshold, int):
            raise BadInputError("chart.prune_threshold must be an integer")
        if self.prune_threshold <= 0:
            raise BadInputError("chart.prune_threshold must be > 0")
        if not self.derive_window_seconds > 0:
            raise BadInputError("chart.derive_window_seconds must be > 0")
        if self.refresh_interval is not None and not self.refresh_interval > 0:
            raise BadInputError("chart.refresh_interval must be > 0 milliseconds when set")
        if self.teardown_policy not in TEARDOWN_POLICIES:
            raise BadInputError(
                f"chart.teardown_policy must be one of: {', '.join(TEARDOWN_POLICIES)}"
            )
        if self.width is not None and self.width <= 0:
            raise BadInputError("chart.width must be > 0 when set")
        if self.height <= 0:
            raise BadInputError("chart.height must be > 0")
        for mode in self.derive_modes:
            if not mode or mode != mode.strip():
                raise BadInputError(f"Invalid derive mode token {mode!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChartOptions:
        known = {item.name for item in fields(cls)}
        kwargs: dict[str, Any] = {}
        for raw_key, value in data.items():
            key = _OPTION_ALIASES.get(raw_key, raw_key)
            if key == "tags":
                # A non-empty tag list in the widget markup switches to tagged mode.
                kwargs["tagged"] = bool(value)
                continue
            if key not in known:
                raise BadInputError(f"Unknown chart option {raw_key!r}")
            kwargs[key] = value

        if "metric" in kwargs and kwargs["metric"] is not None:
            kwargs["metric"] = str(kwargs["metric"]).strip()
        if "tagged" in kwargs:
            kwargs["tagged"] = parse_bool(kwargs["tagged"], name="chart.tagged")
        if "derive_modes" in kwargs:
            kwargs["derive_modes"] = parse_derive_modes(kwargs["derive_modes"])
        if "prune_threshold" in kwargs:
            try:
                kwargs["prune_threshold"] = int(kwargs["prune_threshold"])
            except (TypeError, ValueError) as exc:
                raise BadInputError("chart.prune_threshold must be an integer") from exc
        if "derive_window_seconds" in kwargs:
            window = _optional_number(
                kwargs["derive_window_seconds"], name="chart.derive_window_seconds"
            )
            if window is None:
                raise BadInputError("chart.derive_window_seconds must be a number")
            kwargs["derive_window_seconds"] = window
        if "refresh_interval" in kwargs:
            kwargs["refresh_interval"] = _optional_number(
                kwargs["refresh_interval"], name="chart.refresh_interval"
            )
        for int_key in ("width", "height"):
            if int_key in kwargs and kwargs[int_key] is not None:
                try:
                    kwargs[int_key] = int(float(kwargs[int_key]))
                except (TypeError, ValueError) as exc:
                    raise BadInputError(f"chart.{int_key} must be a number") from exc
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "tagged": self.tagged,
            "label": self.label,
            "unit": self.unit,
            "title": self.title,
            "width": self.width,
            "height": self.height,
            "prune_threshold": self.prune_threshold,
            "derive_modes": list(self.derive_modes),
            "derive_window_seconds": self.derive_window_seconds,
            "refresh_interval": self.refresh_interval,
            "teardown_policy": self.teardown_policy,
        }


@dataclass
class ServiceSettings:
    host: str = "127.0.0.1"
    port: int = 9650

    def validate(self) -> None:
        if not self.host.strip():
            raise BadInputError("service.host must not be blank")
        if not 0 < self.port < 65536:
            raise BadInputError("service.port must be within [1, 65535]")


@dataclass
class AppConfig:
    chart: ChartOptions = field(default_factory=ChartOptions)
    service: ServiceSettings = field(default_factory=ServiceSettings)

    @classmethod
    def load(cls, path: Path | None) -> AppConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise BadInputError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise BadInputError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        chart_data = data.get("chart", {})
        if not isinstance(chart_data, dict):
            raise BadInputError("[chart] section must be a table")
        service_data = data.get("service", {})
        if not isinstance(service_data, dict):
            raise BadInputError("[service] section must be a table")
        try:
            service = ServiceSettings(**service_data)
        except TypeError as exc:
            raise BadInputError(f"Invalid [service] section: {exc}") from exc
        return cls(chart=ChartOptions.from_dict(chart_data), service=service)

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        chart_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "METRICSLIVE_METRIC": ("metric", str.strip),
            "METRICSLIVE_TAGGED": ("tagged", lambda raw: parse_bool(raw, name="tagged")),
            "METRICSLIVE_LABEL": ("label", str),
            "METRICSLIVE_UNIT": ("unit", str),
            "METRICSLIVE_PRUNE_THRESHOLD": ("prune_threshold", int),
            "METRICSLIVE_DERIVE_MODES": ("derive_modes", parse_derive_modes),
            "METRICSLIVE_DERIVE_WINDOW_SECONDS": ("derive_window_seconds", float),
            "METRICSLIVE_REFRESH_INTERVAL_MS": (
                "refresh_interval",
                lambda raw: _optional_number(raw, name="refresh_interval"),
            ),
            "METRICSLIVE_TEARDOWN_POLICY": ("teardown_policy", lambda raw: raw.strip().lower()),
        }
        for key, (attr, caster) in chart_mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except (ValueError, BadInputError) as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.chart, attr, value)

        service_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "METRICSLIVE_SERVICE_HOST": ("host", str),
            "METRICSLIVE_SERVICE_PORT": ("port", int),
        }
        for key, (attr, caster) in service_mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.service, attr, value)

    def validate(self) -> None:
        self.chart.validate()
        self.service.validate()


def load_app_config(path: str | None) -> AppConfig:
    config_path = Path(path) if path else None
    return AppConfig.load(config_path)


__all__ = [
    "AppConfig",
    "ChartOptions",
    "DEFAULT_DERIVE_WINDOW_SECONDS",
    "DEFAULT_LABEL",
    "DEFAULT_PRUNE_THRESHOLD",
    "METRIC_KINDS",
    "ServiceSettings",
    "TEARDOWN_POLICIES",
    "load_app_config",
    "parse_bool",
    "parse_derive_modes",
]
