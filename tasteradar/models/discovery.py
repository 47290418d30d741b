"""Genre-driven discovery of new recordings.

For each genre drawn from the fingerprint, a per-genre candidate pool is
filled from the catalog and drained one entry at a time. Candidates are
excluded when either identity key (content identifier, artist+title pair)
matches something the user already likes, something already pooled, or
something recommended earlier in the same run.
"""

import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional

from rich.console import Console

from tasteradar.data.codec import build_pair_key, normalize
from tasteradar.data.fingerprint import Fingerprint
from tasteradar.data.store import DedupeCache
from tasteradar.errors import CatalogError, MissingFingerprintError
from tasteradar.models.sampling import GENRE_BATCH_SIZE, sample_genres

console = Console()

TARGET_RECOMMENDATIONS = 10
MIN_GENRE_POOL = 5
DISCOVER_LIMIT = 10
MAX_POOL_ATTEMPTS = 5

# uncredited recordings are keyed under this name in every run
UNKNOWN_ARTIST = "Unknown artist"


@dataclass(frozen=True)
class RecommendationSettings:
    target: int = TARGET_RECOMMENDATIONS
    genre_batch_size: int = GENRE_BATCH_SIZE
    min_pool_size: int = MIN_GENRE_POOL
    page_size: int = DISCOVER_LIMIT
    max_attempts: int = MAX_POOL_ATTEMPTS

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "RecommendationSettings":
        cfg = config.get("recommendations", {}) or {}
        return cls(
            target=cfg.get("target", TARGET_RECOMMENDATIONS),
            genre_batch_size=cfg.get("genre_batch_size", GENRE_BATCH_SIZE),
            min_pool_size=cfg.get("min_pool_size", MIN_GENRE_POOL),
            page_size=cfg.get("page_size", DISCOVER_LIMIT),
            max_attempts=cfg.get("max_attempts", MAX_POOL_ATTEMPTS),
        )


@dataclass(frozen=True)
class CatalogEntry:
    """A catalog recording reduced to what discovery needs."""

    catalog_id: Optional[str]
    title: str
    artist: str
    isrc: Optional[str] = None
    barcode: Optional[str] = None

    @classmethod
    def from_recording(cls, recording: dict) -> "CatalogEntry":
        credits = recording.get("artist-credit") or []
        artist = UNKNOWN_ARTIST
        if credits and isinstance(credits[0], dict):
            artist = credits[0].get("name") or UNKNOWN_ARTIST
        isrcs = recording.get("isrcs") or []
        barcode = next(
            (r["barcode"] for r in recording.get("releases") or [] if isinstance(r, dict) and r.get("barcode")),
            None,
        )
        return cls(
            catalog_id=recording.get("id"),
            title=recording.get("title") or "",
            artist=artist,
            isrc=isrcs[0] if isrcs else None,
            barcode=barcode,
        )

    @property
    def content_id(self) -> Optional[str]:
        """First of ISRC, release barcode, catalog ID, lower-cased."""
        identifier = self.isrc or self.barcode or self.catalog_id
        return identifier.lower() if identifier else None

    @property
    def pair_key(self) -> Optional[str]:
        if not normalize(self.artist) or not normalize(self.title):
            return None
        return build_pair_key(self.artist, self.title)

    def matches(self, ids: set[str], pairs: set[str]) -> bool:
        content_id = self.content_id
        pair_key = self.pair_key
        return (content_id is not None and content_id in ids) or (
            pair_key is not None and pair_key in pairs
        )


@dataclass(frozen=True)
class Recommendation:
    title: str
    artist: str
    genre: str
    isrc: Optional[str] = None
    catalog_id: Optional[str] = None
    content_id: Optional[str] = None

    @property
    def mrid(self) -> str:
        return build_pair_key(self.artist, self.title)


@dataclass
class GenrePool:
    """FIFO buffer for one genre plus every key ever admitted to it this run."""

    queue: deque = field(default_factory=deque)
    pooled_ids: set[str] = field(default_factory=set)
    pooled_pairs: set[str] = field(default_factory=set)
    offset: int = 0

    def __len__(self) -> int:
        return len(self.queue)

    def admit(self, entry: CatalogEntry):
        self.queue.append(entry)
        if entry.content_id:
            self.pooled_ids.add(entry.content_id)
        if entry.pair_key:
            self.pooled_pairs.add(entry.pair_key)


class CandidatePools:
    """Per-run map of genre -> GenrePool backed by a catalog source.

    Catalog pages are awaited one at a time; the catalog's own rate limiter
    spaces them out.
    """

    def __init__(self, catalog, settings: RecommendationSettings | None = None):
        self.catalog = catalog
        self.settings = settings or RecommendationSettings()
        self.pools: dict[str, GenrePool] = {}
        self.requests = 0

    def pool(self, genre: str) -> GenrePool:
        return self.pools.setdefault(genre, GenrePool())

    async def ensure(self, genre: str, liked_ids: set[str], liked_pairs: set[str]) -> GenrePool:
        """Top the pool up toward min_pool_size with at most max_attempts catalog pages."""
        pool = self.pool(genre)
        attempts = 0

        while attempts < self.settings.max_attempts and len(pool) < self.settings.min_pool_size:
            page = await self.catalog.fetch_catalog_page(
                genre, limit=self.settings.page_size, offset=pool.offset
            )
            self.requests += 1
            attempts += 1
            recordings = page.get("recordings") or []
            pool.offset += len(recordings)

            for recording in recordings:
                if not isinstance(recording, dict) or not recording.get("title"):
                    continue
                entry = CatalogEntry.from_recording(recording)
                if entry.pair_key is None:
                    continue
                if entry.matches(liked_ids, liked_pairs):
                    continue
                if entry.matches(pool.pooled_ids, pool.pooled_pairs):
                    continue
                pool.admit(entry)

            if not recordings:
                break

        return pool

    async def take(
        self, genre: str, liked_ids: set[str], liked_pairs: set[str]
    ) -> Optional[CatalogEntry]:
        """Next entry for ``genre`` that is still not liked, or None when exhausted."""
        for _ in range(self.settings.max_attempts):
            pool = await self.ensure(genre, liked_ids, liked_pairs)
            while pool.queue:
                entry = pool.queue.popleft()
                if entry.matches(liked_ids, liked_pairs):
                    continue
                return entry
        return None


def liked_pair_keys(fingerprint: Fingerprint) -> set[str]:
    return {t.pair_key for t in fingerprint.liked_tracks if t.artist and t.title}


async def generate_recommendations(
    fingerprint: Fingerprint | None,
    catalog,
    dedupe: DedupeCache | None = None,
    settings: RecommendationSettings | None = None,
    rng: random.Random | None = None,
) -> list[Recommendation]:
    """Produce up to ``settings.target`` new recordings for one invocation.

    Raises MissingFingerprintError if there is nothing to sample from. A
    shorter list is a valid result when genre pools run dry.
    """
    if fingerprint is None:
        raise MissingFingerprintError("No fingerprint found. Run `tasteradar fingerprint` first.")
    if not fingerprint.genres:
        raise MissingFingerprintError("Fingerprint does not contain genre data.")

    settings = settings or RecommendationSettings()
    liked_ids: set[str] = set()
    liked_pairs = liked_pair_keys(fingerprint)
    liked_pairs.update(fingerprint.seen_recommendations)
    if dedupe is not None:
        liked_pairs.update(dedupe.excluded)

    genres = sample_genres(list(fingerprint.genres), settings.genre_batch_size, rng=rng)
    pools = CandidatePools(catalog, settings)
    recommendations: list[Recommendation] = []

    for genre in genres:
        try:
            entry = await pools.take(genre, liked_ids, liked_pairs)
        except CatalogError as e:
            console.print(f"[yellow]Skipping genre {genre}: {e}[/yellow]")
            continue
        if entry is None:
            continue

        if entry.content_id:
            liked_ids.add(entry.content_id)
        if entry.pair_key:
            liked_pairs.add(entry.pair_key)

        recommendations.append(Recommendation(
            title=entry.title,
            artist=entry.artist,
            genre=genre,
            isrc=entry.isrc,
            catalog_id=entry.catalog_id,
            content_id=entry.content_id,
        ))
        if len(recommendations) >= settings.target:
            break

    console.print(
        f"Found [green]{len(recommendations)}[/green] recommendations "
        f"from {len(pools.pools)} genres ({pools.requests} catalog requests)"
    )
    return recommendations
