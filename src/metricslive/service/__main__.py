"""Command-line entry point for the live chart service."""

from __future__ import annotations

import argparse
from typing import Optional

from metricslive.config import load_app_config

from .api import serve


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="metricslive chart service.")
    parser.add_argument("--config", default=None, help="TOML config with a [service] table.")
    parser.add_argument("--host", default=None, help="Interface to bind (overrides config).")
    parser.add_argument("--port", type=int, default=None, help="Port to bind (overrides config).")
    parser.add_argument(
        "--log-level",
        default="info",
        help="Uvicorn log level (default: %(default)s).",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = load_app_config(args.config).service
    serve(args.host or settings.host, args.port or settings.port, log_level=args.log_level)


if __name__ == "__main__":  # pragma: no cover - manual execution entry point
    main()
