"""
Progress and time-remaining estimation for import jobs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


def count_batches(total: int, batch_size: int) -> int:
    """Number of chunks needed for `total` items; 0 when there are none."""
    return math.ceil(max(0, total) / max(1, batch_size))


@dataclass(frozen=True)
class ProgressEstimate:
    percent_complete: int
    estimated_time_remaining_ms: int | None


class ProgressEstimator:
    """
    Derives progress figures from job counters and elapsed wall-clock time.
    """

    @staticmethod
    def percent_complete(*, total: int, processed: int) -> int:
        if total <= 0:
            return 0
        return min(100, math.floor(processed * 100 / total))

    @staticmethod
    def estimated_time_remaining_ms(
        *,
        total: int,
        processed: int,
        elapsed_ms: float,
    ) -> int | None:
        """
        Linear extrapolation of the observed rate.

        None until at least one item has been processed, since an early rate
        is meaningless and a zero rate would divide by zero.
        """

        if processed <= 0 or elapsed_ms <= 0:
            return None
        items_per_ms = processed / elapsed_ms
        remaining = max(0, total - processed)
        return round(remaining / items_per_ms)

    def estimate(self, *, total: int, processed: int, elapsed_ms: float) -> ProgressEstimate:
        return ProgressEstimate(
            percent_complete=self.percent_complete(total=total, processed=processed),
            estimated_time_remaining_ms=self.estimated_time_remaining_ms(
                total=total,
                processed=processed,
                elapsed_ms=elapsed_ms,
            ),
        )
