from __future__ import annotations

import json

import pytest

from metricslive.contracts.error import (
    BadInputError,
    ErrorEnvelope,
    Exit,
    InvariantError,
    IOErrorEnvelope,
    PolicyError,
    guard_cli,
)


def test_envelope_json_omits_empty_hint() -> None:
    assert json.loads(ErrorEnvelope("BadInput", "nope").to_json()) == {
        "error": "BadInput",
        "detail": "nope",
    }
    assert json.loads(ErrorEnvelope("IO", "gone", hint="check path").to_json())["hint"] == (
        "check path"
    )


@pytest.mark.parametrize(
    ("exc", "code", "label"),
    [
        (BadInputError("bad"), Exit.BAD_INPUT, "BadInput"),
        (InvariantError("drift"), Exit.INVARIANT, "Invariant"),
        (PolicyError("closed"), Exit.POLICY, "Policy"),
        (IOErrorEnvelope("missing"), Exit.IO, "IO"),
        (FileNotFoundError("nowhere"), Exit.IO, "FileNotFound"),
    ],
)
def test_guard_cli_maps_exceptions(
    exc: Exception, code: Exit, label: str, capsys: pytest.CaptureFixture[str]
) -> None:
    @guard_cli
    def handler() -> int:
        raise exc

    with pytest.raises(SystemExit) as info:
        handler()
    assert info.value.code == int(code)
    envelope = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert envelope["error"] == label


def test_guard_cli_passes_results_through() -> None:
    assert guard_cli(lambda: 7)() == 7


def test_error_classes_carry_their_mappings() -> None:
    exc = BadInputError("bad metric", hint="choose counter")
    assert exc.envelope().to_dict() == {
        "error": "BadInput",
        "detail": "bad metric",
        "hint": "choose counter",
    }
    assert (BadInputError.http_status, PolicyError.http_status) == (400, 409)
    assert InvariantError.exit_code is Exit.INVARIANT
    assert IOErrorEnvelope.label == "IO"
