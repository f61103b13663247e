from __future__ import annotations

from pathlib import Path

import pytest

from metricslive.contracts.error import BadInputError, IOErrorEnvelope
from metricslive.metrics.validate import load_schema, main, validate_measurement_file
from tests.util.samples import write_ndjson


def test_bundled_schema_loads() -> None:
    schema = load_schema()
    assert schema["properties"]["schema"]["const"] == "measurement.v1"


def test_valid_file(tmp_path: Path) -> None:
    path = write_ndjson(
        tmp_path / "ok.ndjson",
        [
            {"schema": "measurement.v1", "tag": "a", "value": 1, "timestamp": 1},
            "",
            {"x": "b", "y": 2, "z": "1970-01-01T00:00:02Z"},
        ],
    )
    report = validate_measurement_file(path)
    assert report.ok
    assert report.lines == 2
    assert report.to_dict() == {"lines": 2, "invalid": 0, "problems": []}


def test_invalid_lines_are_reported(tmp_path: Path) -> None:
    path = write_ndjson(
        tmp_path / "bad.ndjson",
        [
            {"value": 1, "timestamp": 10},
            "not json",
            {"tag": "a", "timestamp": 11},
            {"value": "high", "timestamp": 12},
            {"schema": "tick.v1", "value": 1, "timestamp": 13},
            {"value": 1, "timestamp": 5},
            {"value": 1, "timestamp": "soon"},
        ],
    )
    report = validate_measurement_file(path)
    assert not report.ok
    assert report.lines == 7
    assert report.invalid == 6
    joined = "\n".join(report.problems)
    assert "[invalid line 2] not JSON" in joined
    assert "[invalid line 3]" in joined
    assert "[invalid line 6] timestamp goes backwards" in joined
    assert "[invalid line 7] Invalid timestamp" in joined


def test_missing_inputs(tmp_path: Path) -> None:
    with pytest.raises(IOErrorEnvelope):
        validate_measurement_file(tmp_path / "absent.ndjson")
    path = write_ndjson(tmp_path / "ok.ndjson", [{"value": 1, "timestamp": 1}])
    with pytest.raises(IOErrorEnvelope):
        validate_measurement_file(path, tmp_path / "absent.json")
    broken = tmp_path / "schema.json"
    broken.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(BadInputError):
        validate_measurement_file(path, broken)


def test_main_exit_codes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    good = write_ndjson(tmp_path / "good.ndjson", [{"value": 1, "timestamp": 1}])
    assert main([str(good)]) == 0
    assert "all lines valid" in capsys.readouterr().out
    bad = write_ndjson(tmp_path / "bad.ndjson", [{"timestamp": 1}])
    assert main([str(bad)]) == 1
    assert "1 invalid line(s)" in capsys.readouterr().err
