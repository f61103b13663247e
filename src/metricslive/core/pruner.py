from __future__ import annotations

import logging

from metricslive.contracts.error import BadInputError

from .series import SeriesStore, last_non_null

logger = logging.getLogger("metricslive")


class HistoryPruner:
    """Bound every positional column to the most recent ``threshold`` entries.

    Pruning triggers once the timeline strictly exceeds ``threshold``. The
    running extrema are re-read from the retained ``running_min`` /
    ``running_max`` tails, so extrema older than the window are forgotten.
    Lifetime ``count`` and ``total`` are left alone.
    """

    def __init__(self, threshold: int) -> None:
        if threshold <= 0:
            raise BadInputError("prune threshold must be > 0")
        self.threshold = threshold
        self.prunes = 0

    def should_prune(self, store: SeriesStore) -> bool:
        return len(store) > self.threshold

    def maybe_prune(self, store: SeriesStore) -> int:
        if not self.should_prune(store):
            return 0
        drop = len(store) - self.threshold
        del store.timeline[:drop]
        for _index, series in store:
            for column in series.positional_columns():
                del column[:drop]
            series.last.min = last_non_null(series.aggregate.running_min)
            series.last.max = last_non_null(series.aggregate.running_max)
        self.prunes += 1
        logger.debug("Pruned %d positions (retained=%d)", drop, len(store))
        return drop


__all__ = ["HistoryPruner"]
