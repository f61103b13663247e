"""Command-line interface for metricslive."""

from .app import configure_logging, console_main, main

__all__ = ["configure_logging", "console_main", "main"]
