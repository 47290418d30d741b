"""Recency decay for liked tracks.

Likes fade in influence over roughly two months but never drop below a
small floor, so old favourites still count for something.
"""

import math
from datetime import datetime, timezone

LIKE_WEIGHT_DECAY_DAYS = 60
LIKE_MIN_WEIGHT = 0.1


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed). Naive values are UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency_weight(
    added_at: str | None,
    now: datetime | None = None,
    decay_days: float = LIKE_WEIGHT_DECAY_DAYS,
    min_weight: float = LIKE_MIN_WEIGHT,
) -> float:
    """Weight in [min_weight, 1.0] for a like added at ``added_at``.

    Missing or unparsable timestamps get exactly ``min_weight``. Future
    timestamps count as "just now".
    """
    timestamp = parse_timestamp(added_at)
    if timestamp is None:
        return min_weight

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    elapsed_days = max((now - timestamp).total_seconds() / 86400, 0.0)
    return max(min_weight, math.exp(-elapsed_days / decay_days))
