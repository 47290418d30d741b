"""Weighted random genre selection (with replacement)."""

import random

from tasteradar.data.fingerprint import GenreScore

GENRE_BATCH_SIZE = 10


def normalize_genre_weights(genres: list[GenreScore]) -> list[tuple[str, float]]:
    """Rescale scores to sum to 1; all-zero input falls back to equal weights.

    Blank labels are dropped.
    """
    genres = [g for g in genres if g.name and g.name.strip()]
    if not genres:
        return []
    scores = [max(g.score or 0.0, 0.0) for g in genres]
    total = sum(scores)
    if total <= 0:
        return [(g.name, 1.0 / len(genres)) for g in genres]
    return [(g.name, s / total) for g, s in zip(genres, scores)]


def pick_genre(weighted: list[tuple[str, float]], rng: random.Random) -> str:
    """Inverse-CDF draw from a normalized distribution."""
    target = rng.random()
    cumulative = 0.0
    last = weighted[-1][0]
    for name, weight in weighted:
        if weight <= 0:
            continue
        cumulative += weight
        last = name
        if target <= cumulative:
            return name
    # cumulative can land just under 1.0 after rounding
    return last


def sample_genres(
    genres: list[GenreScore], count: int = GENRE_BATCH_SIZE, rng: random.Random | None = None
) -> list[str]:
    """Draw ``count`` genre labels proportional to their scores. Repeats are expected."""
    weighted = normalize_genre_weights(list(genres))
    if not weighted:
        raise ValueError("Cannot sample from an empty genre distribution")
    rng = rng or random.Random()
    return [pick_genre(weighted, rng) for _ in range(count)]
