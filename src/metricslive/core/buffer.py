from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Deque

from .measurement import Measurement


class IngestionBuffer:
    """Single-producer/single-consumer queue of measurement batches.

    The producer only appends whole batches; the consumer only drains the
    entire queue at once, so no locking is involved.
    """

    def __init__(self) -> None:
        self._batches: Deque[list[Measurement]] = deque()
        self._pending = 0

    def __len__(self) -> int:
        return self._pending

    @property
    def pending_batches(self) -> int:
        return len(self._batches)

    def push(self, measurements: Iterable[Measurement]) -> None:
        batch = list(measurements)
        if not batch:
            return
        self._batches.append(batch)
        self._pending += len(batch)

    def flush(self) -> list[Measurement]:
        drained: list[Measurement] = []
        while self._batches:
            drained.extend(self._batches.popleft())
        self._pending = 0
        return drained

    def discard(self) -> int:
        dropped = self._pending
        self._batches.clear()
        self._pending = 0
        return dropped


__all__ = ["IngestionBuffer"]
