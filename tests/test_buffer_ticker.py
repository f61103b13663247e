from __future__ import annotations

import asyncio
import logging

import pytest

from metricslive.contracts.error import BadInputError, PolicyError
from metricslive.core.buffer import IngestionBuffer
from metricslive.core.ticker import AsyncioTicker, ManualTicker
from tests.util.samples import m


def test_buffer_drains_in_arrival_order() -> None:
    buffer = IngestionBuffer()
    buffer.push([m(1, 1), m(2, 2)])
    buffer.push([])
    buffer.push(iter([m(3, 3)]))
    assert len(buffer) == 3
    assert buffer.pending_batches == 2
    drained = buffer.flush()
    assert [item.value for item in drained] == [1.0, 2.0, 3.0]
    assert len(buffer) == 0
    assert buffer.flush() == []


def test_buffer_discard_reports_dropped_count() -> None:
    buffer = IngestionBuffer()
    buffer.push([m(1, 1), m(2, 2)])
    assert buffer.discard() == 2
    assert len(buffer) == 0
    assert buffer.pending_batches == 0


def test_manual_ticker_only_fires_while_active() -> None:
    calls: list[int] = []
    ticker = ManualTicker(0.5, lambda: calls.append(1))
    assert ticker.fire() is None
    ticker.start()
    ticker.fire()
    ticker.fire()
    ticker.cancel()
    ticker.fire()
    assert calls == [1, 1]
    assert ticker.ticks == 2
    assert not ticker.active


def test_asyncio_ticker_needs_a_running_loop() -> None:
    with pytest.raises(PolicyError, match="running event loop"):
        AsyncioTicker(0.1, lambda: None)


def test_asyncio_ticker_rejects_non_positive_interval() -> None:
    async def scenario() -> None:
        AsyncioTicker(0, lambda: None)

    with pytest.raises(BadInputError):
        asyncio.run(scenario())


def test_asyncio_ticker_rearms_until_cancelled() -> None:
    calls: list[int] = []

    async def scenario() -> tuple[int, int]:
        ticker = AsyncioTicker(0.01, lambda: calls.append(1))
        ticker.start()
        ticker.start()
        await asyncio.sleep(0.08)
        ticker.cancel()
        seen = len(calls)
        await asyncio.sleep(0.05)
        assert not ticker.active
        return seen, ticker.ticks

    seen, ticks = asyncio.run(scenario())
    assert seen >= 2
    assert len(calls) == seen
    assert ticks == seen


def test_asyncio_ticker_survives_failing_callbacks(caplog: pytest.LogCaptureFixture) -> None:
    attempts: list[int] = []

    def boom() -> None:
        attempts.append(1)
        raise RuntimeError("tick failed")

    async def scenario() -> None:
        ticker = AsyncioTicker(0.01, boom)
        ticker.start()
        await asyncio.sleep(0.06)
        ticker.cancel()

    with caplog.at_level(logging.ERROR, logger="metricslive"):
        asyncio.run(scenario())
    assert len(attempts) >= 2
    assert "Tick callback failed" in caplog.text
