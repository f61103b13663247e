"""Pydantic models for the live chart service."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from metricslive.config import (
    DEFAULT_DERIVE_WINDOW_SECONDS,
    DEFAULT_LABEL,
    DEFAULT_PRUNE_THRESHOLD,
    ChartOptions,
)
from metricslive.contracts.error import BadInputError
from metricslive.core.measurement import Measurement, coerce_timestamp


class MeasurementModel(BaseModel):
    """Wire form of a measurement; accepts ``x/y/z`` as aliases."""

    model_config = ConfigDict(populate_by_name=True)

    tag: str = Field(
        default="",
        validation_alias=AliasChoices("tag", "x"),
        description="Series tag (ignored by untagged charts).",
    )
    value: float = Field(
        ...,
        allow_inf_nan=False,
        validation_alias=AliasChoices("value", "y"),
        description="Measured value.",
    )
    timestamp: float = Field(
        ...,
        validation_alias=AliasChoices("timestamp", "z"),
        description="Seconds since the epoch, or an ISO-8601 string.",
    )

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> float:
        try:
            return coerce_timestamp(value)
        except BadInputError as exc:
            raise ValueError(str(exc)) from exc

    def to_measurement(self) -> Measurement:
        return Measurement(tag=self.tag, value=self.value, timestamp=self.timestamp)


class MeasurementBatch(BaseModel):
    measurements: list[MeasurementModel] = Field(default_factory=list)


class ChartCreateRequest(BaseModel):
    """Request payload for registering a chart."""

    name: str = Field(..., description="Unique chart name.")
    metric: Optional[str] = Field(
        default=None, description="One of counter, last_value, sum, summary."
    )
    tagged: bool = False
    label: str = DEFAULT_LABEL
    unit: Optional[str] = None
    title: Optional[str] = None
    width: Optional[int] = Field(default=None, gt=0)
    height: int = Field(default=300, gt=0)
    prune_threshold: int = Field(default=DEFAULT_PRUNE_THRESHOLD, gt=0)
    derive_modes: list[str] | str = Field(
        default_factory=list, description="Derive modes such as p50, p95, mean."
    )
    derive_window_seconds: float = Field(default=DEFAULT_DERIVE_WINDOW_SECONDS, gt=0)
    refresh_interval: Optional[float] = Field(
        default=None, gt=0, description="Flush interval in milliseconds; enables buffering."
    )
    teardown_policy: str = Field(default="drop", description="drop or flush.")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("value must not be blank")
        return value

    def to_options(self) -> ChartOptions:
        return ChartOptions.from_dict(self.model_dump(exclude={"name"}))


class SeriesSummary(BaseModel):
    index: int
    key: str
    kind: str
    count: int
    total: float
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    last: Optional[float] = None
    source_index: Optional[int] = None
    mode: Optional[str] = None


class ChartSnapshot(BaseModel):
    name: str
    metric: Optional[str]
    tagged: bool
    label: str
    unit: Optional[str] = None
    timeline_length: int
    buffered: int
    prunes: int
    closed: bool
    series: list[SeriesSummary]


class ChartListResponse(BaseModel):
    charts: list[ChartSnapshot]


class ColumnsResponse(BaseModel):
    name: str
    labels: list[str]
    columns: list[list[Optional[float]]]


class IngestResponse(BaseModel):
    accepted: int
    applied: int
    buffered: int


class FlushResponse(BaseModel):
    applied: int


__all__ = [
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
