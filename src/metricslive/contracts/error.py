"""Error hierarchy shared by the chart engine, the CLI and the HTTP service.

Every :class:`EnvelopeError` subclass names the CLI exit code, the envelope
label and the HTTP status it maps to, so ``guard_cli`` and the service's
exception handler translate failures the same way.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from functools import wraps
from typing import Any, ClassVar, NoReturn, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


class Exit(IntEnum):
    """Exit codes returned by the ``metricslive`` command."""

    OK = 0
    BAD_INPUT = 2
    INVARIANT = 3
    POLICY = 4
    IO = 5


@dataclass(slots=True)
class ErrorEnvelope:
    """JSON error payload written to stderr when a command fails."""

    error: str
    detail: str
    hint: str | None = None

    def to_dict(self) -> dict[str, str]:
        payload = {"error": self.error, "detail": self.detail}
        if self.hint:
            payload["hint"] = self.hint
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def die(code: Exit, kind: str, detail: str, hint: str | None = None) -> NoReturn:
    sys.stderr.write(ErrorEnvelope(error=kind, detail=detail, hint=hint).to_json() + "\n")
    try:
        sys.stderr.flush()
    finally:
        sys.exit(int(code))


class EnvelopeError(Exception):
    """Base class; subclasses pick the exit code, label and HTTP status."""

    exit_code: ClassVar[Exit] = Exit.POLICY
    label: ClassVar[str] = "UnhandledEnvelope"
    http_status: ClassVar[int] = 500

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint

    def envelope(self) -> ErrorEnvelope:
        return ErrorEnvelope(error=self.label, detail=str(self), hint=self.hint)


class BadInputError(EnvelopeError):
    """Malformed options, measurements or configuration files."""

    exit_code = Exit.BAD_INPUT
    label = "BadInput"
    http_status = 400


class InvariantError(EnvelopeError):
    """Series alignment or derivation bookkeeping went inconsistent."""

    exit_code = Exit.INVARIANT
    label = "Invariant"
    http_status = 500


class PolicyError(EnvelopeError):
    """Operation not allowed in the current chart or registry state."""

    exit_code = Exit.POLICY
    label = "Policy"
    http_status = 409


class IOErrorEnvelope(EnvelopeError):  # noqa: N818 - named after Exit.IO
    """Unreadable measurement files or schema documents."""

    exit_code = Exit.IO
    label = "IO"
    http_status = 500


def guard_cli(fn: Callable[..., T]) -> Callable[..., T]:
    """Run ``fn``; on failure write an envelope to stderr and exit with its code."""

    @wraps(fn)
    def _wrapped(*args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except EnvelopeError as exc:
            die(exc.exit_code, exc.label, str(exc), hint=exc.hint)
        except FileNotFoundError as exc:
            die(Exit.IO, "FileNotFound", str(exc))
        except Exception as exc:  # pragma: no cover - last-resort envelope
            logger.exception("Unhandled CLI exception")
            die(Exit.POLICY, "Unhandled", f"{type(exc).__name__}: {exc}")

    return _wrapped


__all__ = [
    "Exit",
    "ErrorEnvelope",
    "EnvelopeError",
    "BadInputError",
    "InvariantError",
    "PolicyError",
    "IOErrorEnvelope",
    "guard_cli",
    "die",
]
