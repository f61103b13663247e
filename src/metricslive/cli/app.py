"""
app.py

Command-line host for live telemetry charts:
- replay: push an NDJSON measurement file through a chart on an asyncio loop
- validate: check NDJSON against the bundled measurement.v1 schema
- serve: run the FastAPI chart service with uvicorn

Logging goes to the ``metricslive`` logger (console, optional JSON format,
optional rotating file). Failures map to JSON error envelopes on stderr with
stable exit codes.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from metricslive.chart import TelemetryChart
from metricslive.cli.commands import CLIContext, register_subcommands
from metricslive.config import AppConfig, ChartOptions, load_app_config
from metricslive.contracts.error import PolicyError, guard_cli
from metricslive.metrics.core import iter_measurement_batches
from metricslive.metrics.validate import ValidationReport, validate_measurement_file
from metricslive.surface import RecordingSurface

logger = logging.getLogger("metricslive")
logger.setLevel(logging.INFO)

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUP_COUNT = 5
DEFAULT_BATCH_SIZE = 50


class JsonFormatter(logging.Formatter):
    """Render log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, DEFAULT_LOG_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    use_json: bool = False,
    log_file: str | None = None,
    *,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> None:
    """Configure console (and optional rotating file) logging."""

    formatter: logging.Formatter
    if use_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_LOG_DATEFMT)

    for handler in list(logger.handlers):
        with contextlib.suppress(Exception):
            handler.close()
        logger.removeHandler(handler)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_file:
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        handler.setFormatter(formatter)
        logger.addHandler(handler)


APP_CONFIG: AppConfig = AppConfig()
OUTPUT_JSON: bool = False


def set_app_config(cfg: AppConfig) -> None:
    global APP_CONFIG
    APP_CONFIG = cfg


def current_config() -> AppConfig:
    return APP_CONFIG


def emit_success(
    command: str, *, text: str | None = None, data: dict[str, Any] | None = None
) -> None:
    if OUTPUT_JSON:
        payload: dict[str, Any] = {"ok": True, "command": command}
        if data:
            payload.update(data)
        if text is not None and "result" not in payload:
            payload["result"] = text
        print(json.dumps(payload, ensure_ascii=False))
    else:
        if text is not None:
            print(text)


@dataclass
class ReplayResult:
    pushed: int = 0
    discarded: int = 0
    labels: list[str] = field(default_factory=list)
    columns: list[list[Optional[float]]] = field(default_factory=list)
    snapshot: dict[str, Any] = field(default_factory=dict)
    renders: int = 0


async def replay_measurements(
    path: Path,
    options: ChartOptions,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_delay: float = 0.0,
) -> ReplayResult:
    """Push ``path`` through a fresh chart, one batch per ``push_data`` call."""

    surface = RecordingSurface(TelemetryChart.get_config(options))
    chart = TelemetryChart(surface, options)
    result = ReplayResult()
    try:
        for batch in iter_measurement_batches(path, batch_size):
            chart.push_data(batch)
            result.pushed += len(batch)
            # Yield so the flush timer can run between batches.
            await asyncio.sleep(batch_delay)
        if options.teardown_policy == "flush":
            chart.flush()
        result.labels = chart.labels()
        result.columns = chart.columns()
        result.snapshot = chart.snapshot()
    finally:
        result.discarded = chart.teardown()
    result.renders = surface.set_data_calls
    logger.info(
        "Replayed %d measurements from %s (%d series, %d discarded)",
        result.pushed,
        path,
        len(result.labels),
        result.discarded,
    )
    return result


def replay_file(
    path: str,
    options: ChartOptions,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_delay: float = 0.0,
) -> ReplayResult:
    return asyncio.run(
        replay_measurements(
            Path(path), options, batch_size=batch_size, batch_delay=batch_delay
        )
    )


def validate_file(path: str, schema: str | None = None) -> ValidationReport:
    return validate_measurement_file(Path(path), Path(schema) if schema else None)


def serve_charts(host: str, port: int, log_level: str) -> None:
    # fastapi/uvicorn are only needed for this command.
    from metricslive.service.api import serve

    serve(host, port, log_level=log_level)


def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        description="Live telemetry charts: replay measurement files, validate them, serve charts.",
    )
    p.add_argument("--log-json", action="store_true", help="Emit logs in JSON format")
    p.add_argument(
        "--log-file",
        default=None,
        help="Optional log file path (rotates at 5MB, keeps 5 backups by default)",
    )
    p.add_argument(
        "--log-max-bytes",
        type=int,
        default=DEFAULT_LOG_MAX_BYTES,
        help="Max bytes per log file before rotation (default: %(default)s)",
    )
    p.add_argument(
        "--log-backup-count",
        type=int,
        default=DEFAULT_LOG_BACKUP_COUNT,
        help="Number of rotated log files to keep (default: %(default)s)",
    )
    p.add_argument(
        "--json", action="store_true", help="Emit machine-readable success output to stdout"
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to TOML config file (overrides defaults and env overrides)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    ctx = CLIContext(
        emit_success=emit_success,
        replay_file=replay_file,
        validate_file=validate_file,
        serve=serve_charts,
        config=current_config,
        logger=logger,
        json_enabled=lambda: OUTPUT_JSON,
        guard=guard_cli,
        default_batch_size=DEFAULT_BATCH_SIZE,
    )

    handlers = register_subcommands(sub, ctx)

    args = p.parse_args(argv)

    global OUTPUT_JSON
    OUTPUT_JSON = bool(args.json)

    configure_logging(
        args.log_json,
        args.log_file,
        max_bytes=args.log_max_bytes,
        backup_count=args.log_backup_count,
    )

    cfg_path = args.config or os.getenv("METRICSLIVE_CONFIG")
    load_config = guard_cli(load_app_config)
    cfg = load_config(cfg_path)
    set_app_config(cfg)
    if cfg_path:
        logger.info("Loaded config from %s", cfg_path)

    handler = handlers.get(args.cmd)
    if handler is None:
        raise PolicyError(f"Unknown command {args.cmd}")
    return handler(args)


def console_main() -> None:
    """Entry point for console_scripts."""

    try:
        raise SystemExit(main(sys.argv[1:]))
    except SystemExit:
        raise
    except Exception as e:  # noqa: BLE001
        logger.exception("Fatal error: %s", e)
        raise SystemExit(2) from e


if __name__ == "__main__":
    console_main()
