"""CLI command registration and handlers for metricslive."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from metricslive.config import AppConfig, ChartOptions, parse_derive_modes
from metricslive.contracts.error import BadInputError, Exit


@dataclass(frozen=True)
class CLIContext:
    """Runtime hooks supplied by the top-level CLI entrypoint."""

    emit_success: Callable[..., None]
    replay_file: Callable[..., Any]
    validate_file: Callable[..., Any]
    serve: Callable[[str, int, str], None]
    config: Callable[[], AppConfig]
    logger: logging.Logger
    json_enabled: Callable[[], bool]
    guard: Callable[[Callable[[argparse.Namespace], int]], Callable[[argparse.Namespace], int]]
    default_batch_size: int


def register_subcommands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    ctx: CLIContext,
) -> Dict[str, Callable[[argparse.Namespace], int]]:
    """Define CLI subcommands and return their handlers."""

    handlers: Dict[str, Callable[[argparse.Namespace], int]] = {}

    def _register(
        name: str,
        help_text: Optional[str],
        configure: Callable[[argparse.ArgumentParser], Callable[[argparse.Namespace], int]],
    ) -> None:
        parser = subparsers.add_parser(name, help=help_text)
        handler = configure(parser)
        handlers[name] = ctx.guard(handler)

    _register(
        "replay",
        "Replay an NDJSON measurement file through a live chart.",
        lambda parser: _configure_replay(parser, ctx),
    )
    _register(
        "validate",
        "Validate an NDJSON measurement file against the measurement.v1 schema.",
        lambda parser: _configure_validate(parser, ctx),
    )
    _register(
        "serve",
        "Serve the chart HTTP API.",
        lambda parser: _configure_serve(parser, ctx),
    )
    return handlers


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError("value must be > 0")
    return value


def _chart_options(args: argparse.Namespace, base: ChartOptions) -> ChartOptions:
    overrides: Dict[str, Any] = {}
    if args.metric is not None:
        overrides["metric"] = args.metric
    if args.tagged:
        overrides["tagged"] = True
    if args.label is not None:
        overrides["label"] = args.label
    if args.unit is not None:
        overrides["unit"] = args.unit
    if args.derive is not None:
        overrides["derive_modes"] = parse_derive_modes(args.derive)
    if args.window is not None:
        overrides["derive_window_seconds"] = args.window
    if args.prune_threshold is not None:
        overrides["prune_threshold"] = args.prune_threshold
    if args.refresh_interval is not None:
        overrides["refresh_interval"] = args.refresh_interval
    overrides["teardown_policy"] = "drop" if args.drop_on_exit else "flush"
    options = dataclasses.replace(base, **overrides)
    options.validate()
    return options


def _format_cell(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:g}"


def _format_columns(labels: List[str], columns: List[List[Optional[float]]]) -> str:
    header = "\t".join(["timestamp", *labels])
    if not columns:
        return header
    rows = [header]
    for position in range(len(columns[0])):
        rows.append("\t".join(_format_cell(column[position]) for column in columns))
    return "\n".join(rows)


def _format_summary(snapshot: Dict[str, Any], pushed: int, discarded: int) -> str:
    lines = [
        f"metric={snapshot.get('metric')} timeline={snapshot.get('timeline_length')} "
        f"pushed={pushed} discarded={discarded} prunes={snapshot.get('prunes')}"
    ]
    for entry in snapshot.get("series", []):
        lines.append(
            f"  [{entry['index']}] {entry['key']}: count={entry['count']} "
            f"total={entry['total']:g} min={_format_cell(entry['min'])} "
            f"max={_format_cell(entry['max'])} avg={_format_cell(entry['avg'])} "
            f"last={_format_cell(entry['last'])}"
        )
    return "\n".join(lines)


def _configure_replay(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("path", help="NDJSON file with one measurement per line")
    parser.add_argument(
        "--metric",
        default=None,
        help="Metric kind: counter, last_value, sum or summary (overrides config)",
    )
    parser.add_argument(
        "--tagged", action="store_true", help="Create one series per measurement tag"
    )
    parser.add_argument("--label", default=None, help="Series label for untagged charts")
    parser.add_argument("--unit", default=None, help="Display unit attached to each series")
    parser.add_argument(
        "--derive", default=None, help="Derive modes, e.g. 'p50,p95,mean'"
    )
    parser.add_argument(
        "--window", type=float, default=None, help="Derivation window in seconds"
    )
    parser.add_argument(
        "--prune-threshold", type=_positive_int, default=None, help="Max retained timeline length"
    )
    parser.add_argument(
        "--refresh-interval",
        type=float,
        default=None,
        help="Buffer pushes and flush every N milliseconds",
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=ctx.default_batch_size,
        help="Measurements per push (default: %(default)s)",
    )
    parser.add_argument(
        "--batch-delay",
        type=float,
        default=0.0,
        help="Seconds to wait between pushes (default: %(default)s)",
    )
    parser.add_argument(
        "--output",
        choices=["columns", "summary"],
        default="summary",
        help="Print the final columns or per-series statistics (default: %(default)s)",
    )
    parser.add_argument(
        "--drop-on-exit",
        action="store_true",
        help="Discard still-buffered measurements instead of flushing them at the end",
    )

    def handler(args: argparse.Namespace) -> int:
        if args.batch_delay < 0:
            raise BadInputError("--batch-delay must be >= 0")
        options = _chart_options(args, ctx.config().chart)
        result = ctx.replay_file(
            args.path,
            options,
            batch_size=args.batch_size,
            batch_delay=args.batch_delay,
        )
        if args.output == "columns":
            text = _format_columns(result.labels, result.columns)
            data: Dict[str, Any] = {"labels": result.labels, "columns": result.columns}
        else:
            text = _format_summary(result.snapshot, result.pushed, result.discarded)
            data = {"summary": result.snapshot}
        data.update({"pushed": result.pushed, "discarded": result.discarded})
        ctx.emit_success("replay", text=text, data=data)
        return int(Exit.OK)

    return handler


def _configure_validate(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("path", help="NDJSON measurement file")
    parser.add_argument(
        "--schema",
        default=None,
        help="Schema JSON path (default: bundled measurement.v1 schema)",
    )

    def handler(args: argparse.Namespace) -> int:
        report = ctx.validate_file(args.path, args.schema)
        for problem in report.problems:
            print(problem, file=sys.stderr)
        if not report.ok:
            ctx.logger.warning("%d invalid line(s) in %s", report.invalid, args.path)
            if ctx.json_enabled():
                ctx.emit_success("validate", data={"ok": False, **report.to_dict()})
            return 1
        ctx.emit_success(
            "validate",
            text=f"Validation finished: {report.lines} line(s), all valid",
            data=report.to_dict(),
        )
        return int(Exit.OK)

    return handler


def _configure_serve(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("--host", default=None, help="Interface to bind (default: from config)")
    parser.add_argument(
        "--port", type=_positive_int, default=None, help="Port to bind (default: from config)"
    )
    parser.add_argument(
        "--log-level", default="info", help="Uvicorn log level (default: %(default)s)"
    )

    def handler(args: argparse.Namespace) -> int:
        settings = ctx.config().service
        host = args.host or settings.host
        port = args.port or settings.port
        ctx.logger.info("Serving charts on http://%s:%d", host, port)
        ctx.serve(host, port, args.log_level)
        return int(Exit.OK)

    return handler
