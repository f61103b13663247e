"""Validate measurement NDJSON files against the bundled measurement.v1 schema."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from metricslive.contracts.error import BadInputError, IOErrorEnvelope
from metricslive.core.measurement import coerce_timestamp


def _default_schema_text() -> str:
    schema_resource = resources.files("metricslive.contracts") / "measurement_schema.json"
    with schema_resource.open(encoding="utf-8") as stream:
        return stream.read()


def load_schema(custom_schema: Path | None = None) -> dict[str, Any]:
    if custom_schema is None:
        text = _default_schema_text()
    else:
        try:
            text = custom_schema.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise IOErrorEnvelope(f"Schema not found: {custom_schema}") from exc
    try:
        schema = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BadInputError(f"Schema is not valid JSON: {exc}") from exc
    if not isinstance(schema, dict):
        raise BadInputError("Schema document must be a JSON object")
    return schema


@dataclass
class ValidationReport:
    lines: int = 0
    invalid: int = 0
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.invalid == 0

    def to_dict(self) -> dict[str, Any]:
        return {"lines": self.lines, "invalid": self.invalid, "problems": list(self.problems)}


def validate_measurement_file(path: Path, schema_path: Path | None = None) -> ValidationReport:
    validator = Draft202012Validator(load_schema(schema_path))
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise IOErrorEnvelope(f"Measurement source not found: {path}") from exc

    report = ValidationReport()
    previous_ts: float | None = None
    for idx, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        report.lines += 1
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as exc:
            report.invalid += 1
            report.problems.append(f"[invalid line {idx}] not JSON: {exc.msg}")
            continue
        errors = sorted(validator.iter_errors(obj), key=lambda err: list(err.path))
        if errors:
            report.invalid += 1
            for err in errors:
                report.problems.append(f"[invalid line {idx}] {err.message} @ {list(err.path)}")
            continue

        raw_ts = obj.get("timestamp", obj.get("z"))
        try:
            ts = coerce_timestamp(raw_ts)
        except BadInputError as exc:
            report.invalid += 1
            report.problems.append(f"[invalid line {idx}] {exc}")
            continue
        if previous_ts is not None and ts < previous_ts:
            report.invalid += 1
            report.problems.append(
                f"[invalid line {idx}] timestamp goes backwards: {ts} < {previous_ts}"
            )
            continue
        previous_ts = ts
    return report


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate measurement NDJSON against the measurement.v1 schema",
    )
    parser.add_argument("ndjson", type=Path, help="Path to measurement NDJSON file")
    parser.add_argument(
        "--schema",
        type=Path,
        default=None,
        help="Schema JSON path (default: bundled measurement.v1 schema)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _create_parser().parse_args(argv)
    report = validate_measurement_file(args.ndjson, args.schema)
    for problem in report.problems:
        print(problem, file=sys.stderr)
    if report.invalid:
        print(f"Validation finished: {report.invalid} invalid line(s)", file=sys.stderr)
    else:
        print("Validation finished: all lines valid")
    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
