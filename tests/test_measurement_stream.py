from __future__ import annotations

import logging
from pathlib import Path

import pytest

from metricslive.contracts.error import BadInputError, IOErrorEnvelope
from metricslive.metrics import (
    iter_measurement_batches,
    iter_measurement_file,
    parse_measurement_line,
)
from tests.util.samples import write_ndjson


def test_parse_valid_lines() -> None:
    parsed = parse_measurement_line('{"schema": "measurement.v1", "tag": "a", "value": 2, "timestamp": 3}')
    assert parsed is not None
    assert (parsed.tag, parsed.value, parsed.timestamp) == ("a", 2.0, 3.0)
    wire = parse_measurement_line('{"x": "b", "y": 1.5, "z": "1970-01-01T00:00:04Z"}')
    assert wire is not None
    assert wire.timestamp == 4.0


def test_parse_skips_bad_lines(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="metricslive")
    assert parse_measurement_line("   ") is None
    assert parse_measurement_line("{not json") is None
    assert parse_measurement_line("[1, 2]") is None
    assert parse_measurement_line('{"schema": "tick.v1", "value": 1, "timestamp": 1}') is None
    assert parse_measurement_line('{"value": "NaN", "timestamp": 1}') is None
    assert "Ignored invalid measurement line" in caplog.text
    assert "schema=tick.v1" in caplog.text


def test_iter_file_and_batches(tmp_path: Path) -> None:
    path = write_ndjson(
        tmp_path / "m.ndjson",
        [
            {"value": 1, "timestamp": 1},
            "garbage",
            {"value": 2, "timestamp": 2},
            {"value": 3, "timestamp": 3},
            {"value": 4, "timestamp": 4},
            {"value": 5, "timestamp": 5},
        ],
    )
    assert [item.value for item in iter_measurement_file(path)] == [1.0, 2.0, 3.0, 4.0, 5.0]
    sizes = [len(batch) for batch in iter_measurement_batches(path, 2)]
    assert sizes == [2, 2, 1]


def test_missing_file_is_io_error(tmp_path: Path) -> None:
    with pytest.raises(IOErrorEnvelope):
        list(iter_measurement_file(tmp_path / "absent.ndjson"))


def test_batch_size_must_be_positive(tmp_path: Path) -> None:
    path = write_ndjson(tmp_path / "m.ndjson", [{"value": 1, "timestamp": 1}])
    with pytest.raises(BadInputError):
        list(iter_measurement_batches(path, 0))
