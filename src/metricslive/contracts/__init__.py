"""Error contracts and bundled JSON schemas for metricslive."""

from .error import (
    BadInputError,
    EnvelopeError,
    ErrorEnvelope,
    Exit,
    InvariantError,
    IOErrorEnvelope,
    PolicyError,
    die,
    guard_cli,
)

__all__ = [
    "BadInputError",
    "EnvelopeError",
    "ErrorEnvelope",
    "Exit",
    "IOErrorEnvelope",
    "InvariantError",
    "PolicyError",
    "die",
    "guard_cli",
]
