"""Periodic flush timers driving buffered charts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from metricslive.contracts.error import BadInputError, PolicyError

logger = logging.getLogger("metricslive")

TickCallback = Callable[[], object]


class PeriodicTimer(Protocol):
    @property
    def active(self) -> bool: ...

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, TickCallback], PeriodicTimer]


class AsyncioTicker:
    """Re-arming ``loop.call_later`` timer; callbacks run on the loop thread."""

    def __init__(
        self,
        interval: float,
        callback: TickCallback,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if not interval > 0:
            raise BadInputError("tick interval must be > 0 seconds")
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise PolicyError(
                    "Buffered charts need a running event loop",
                    hint="construct the chart inside a coroutine or pass a ticker_factory",
                ) from exc
        self.interval = interval
        self.callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self.ticks = 0

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None:
            return
        self._handle = self._loop.call_later(self.interval, self._fire)

    def cancel(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()

    def _fire(self) -> None:
        if self._handle is None:
            return
        self.ticks += 1
        try:
            self.callback()
        except Exception:  # noqa: BLE001 - one failed tick must not stop the timer
            logger.exception("Tick callback failed")
        if self._handle is not None:
            self._handle = self._loop.call_later(self.interval, self._fire)


class ManualTicker:
    """Timer that only fires when :meth:`fire` is called."""

    def __init__(self, interval: float, callback: TickCallback) -> None:
        self.interval = interval
        self.callback = callback
        self._active = False
        self.ticks = 0

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        self._active = True

    def cancel(self) -> None:
        self._active = False

    def fire(self) -> object:
        if not self._active:
            return None
        self.ticks += 1
        return self.callback()


__all__ = ["AsyncioTicker", "ManualTicker", "PeriodicTimer", "TickCallback", "TimerFactory"]
