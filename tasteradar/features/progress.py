"""Weighted progress reporting for the multi-stage fingerprint build."""

import math
from dataclasses import dataclass
from typing import Callable, Optional

STAGE_WEIGHTS = {
    "liked_tracks": 0.4,
    "followed_artists": 0.15,
    "top_artists": 0.15,
    "artist_details": 0.3,
}
STAGE_ORDER = list(STAGE_WEIGHTS)


@dataclass(frozen=True)
class ProgressUpdate:
    stage: str
    percent: int
    message: str


class ProgressTracker:
    """Maps (stage, ratio) pairs onto one overall percentage.

    Percentages never go backwards and stay at 99 or below until
    ``complete()`` reports 100.
    """

    def __init__(self, callback: Optional[Callable[[ProgressUpdate], None]] = None):
        self.callback = callback
        self.percent = 0
        self.history: list[ProgressUpdate] = []

    def stage_ratio(self, processed: int, total: int) -> float:
        """Ratio for a paginated stage; unknown totals report a nominal value."""
        if total > 0:
            return min(processed / total, 0.99)
        return 0.5 if processed > 0 else 0.25

    def emit(self, stage: str, ratio: float, message: str) -> ProgressUpdate:
        base = sum(STAGE_WEIGHTS[s] for s in STAGE_ORDER[: STAGE_ORDER.index(stage)])
        weighted = base + min(max(ratio, 0.0), 1.0) * STAGE_WEIGHTS[stage]
        percent = min(math.floor(weighted * 100 + 0.5), 99)
        self.percent = max(self.percent, percent)
        return self._publish(ProgressUpdate(stage, self.percent, message))

    def complete(self, message: str = "Completed") -> ProgressUpdate:
        self.percent = 100
        return self._publish(ProgressUpdate(STAGE_ORDER[-1], 100, message))

    def _publish(self, update: ProgressUpdate) -> ProgressUpdate:
        self.history.append(update)
        if self.callback is not None:
            self.callback(update)
        return update
