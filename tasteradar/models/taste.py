"""Taste fingerprint generation.

Turns raw library signals into artist weights, then into a normalized genre
distribution:

- liked tracks add a recency-decayed weight to each credited artist
- followed artists add a flat FOLLOW_WEIGHT
- top artists are flagged but add no weight
- each artist's weight counts in full toward every genre it is tagged with
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from rich.console import Console

from tasteradar.data.codec import normalize
from tasteradar.data.fingerprint import Artist, Fingerprint, GenreScore, LikedTrack, UserProfile
from tasteradar.data.spotify_client import MAX_ARTIST_BATCH, chunked
from tasteradar.features.progress import ProgressTracker
from tasteradar.features.recency import LIKE_MIN_WEIGHT, LIKE_WEIGHT_DECAY_DAYS, recency_weight

console = Console()

FOLLOW_WEIGHT = 0.5
DEFAULT_ARTIST_WEIGHT = 1.0
LIKED_PAGE_SIZE = 50
TOP_ARTISTS_LIMIT = 20
TOP_ARTISTS_TIME_RANGE = "medium_term"


@dataclass(frozen=True)
class FingerprintSettings:
    decay_days: float = LIKE_WEIGHT_DECAY_DAYS
    min_weight: float = LIKE_MIN_WEIGHT
    follow_weight: float = FOLLOW_WEIGHT
    artist_batch_size: int = MAX_ARTIST_BATCH
    liked_page_size: int = LIKED_PAGE_SIZE
    top_artists_limit: int = TOP_ARTISTS_LIMIT
    top_artists_time_range: str = TOP_ARTISTS_TIME_RANGE

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "FingerprintSettings":
        cfg = config.get("fingerprint", {}) or {}
        return cls(
            decay_days=cfg.get("like_decay_days", LIKE_WEIGHT_DECAY_DAYS),
            min_weight=cfg.get("like_min_weight", LIKE_MIN_WEIGHT),
            follow_weight=cfg.get("follow_weight", FOLLOW_WEIGHT),
            artist_batch_size=min(cfg.get("artist_batch_size", MAX_ARTIST_BATCH), MAX_ARTIST_BATCH),
            liked_page_size=cfg.get("liked_page_size", LIKED_PAGE_SIZE),
            top_artists_limit=cfg.get("top_artists_limit", TOP_ARTISTS_LIMIT),
            top_artists_time_range=cfg.get("top_artists_time_range", TOP_ARTISTS_TIME_RANGE),
        )


def compute_genre_scores(
    artists: list[Artist], artist_weights: dict[str, float]
) -> list[GenreScore]:
    """Normalized genre distribution, sorted by score descending.

    Artists without a recorded weight count as DEFAULT_ARTIST_WEIGHT. Scores
    are divided by the sum of all genre contributions; when that sum is zero
    every genre gets 1/N.
    """
    genre_weights: dict[str, float] = {}
    for artist in artists:
        weight = artist_weights.get(artist.id, DEFAULT_ARTIST_WEIGHT) if artist.id else DEFAULT_ARTIST_WEIGHT
        for genre in artist.genres:
            label = normalize(genre)
            if not label:
                continue
            genre_weights[label] = genre_weights.get(label, 0.0) + max(weight, 0.0)

    if not genre_weights:
        return []

    total = sum(genre_weights.values())
    if total > 0:
        scores = {name: w / total for name, w in genre_weights.items()}
    else:
        scores = {name: 1.0 / len(genre_weights) for name in genre_weights}

    return sorted(
        (GenreScore(name=name, score=score) for name, score in scores.items()),
        key=lambda g: (-g.score, g.name),
    )


class FingerprintBuilder:
    """Runs one fingerprint build against a library source.

    All accumulated state (artist IDs, weights, liked tracks) belongs to this
    instance; build a new one per run.
    """

    def __init__(
        self,
        library,
        settings: FingerprintSettings | None = None,
        progress: ProgressTracker | None = None,
        now: datetime | None = None,
    ):
        self.library = library
        self.settings = settings or FingerprintSettings()
        self.progress = progress or ProgressTracker()
        self.now = now
        self.artist_weights: dict[str, float] = {}
        self.liked_tracks: list[LikedTrack] = []
        self.top_artist_ids: set[str] = set()

    def _add_weight(self, artist_id: str, weight: float):
        self.artist_weights[artist_id] = self.artist_weights.get(artist_id, 0.0) + weight

    async def collect_liked_tracks(self) -> int:
        """Page through saved tracks. Returns number of items processed."""
        self.progress.emit("liked_tracks", 0, "Fetching liked tracks…")
        offset = 0
        total = 0

        while True:
            page = await self.library.liked_tracks_page(offset=offset, limit=self.settings.liked_page_size)
            items = page.get("items") or []
            total = page.get("total") or total

            for item in items:
                track = item.get("track")
                if not track or not track.get("id"):
                    continue

                weight = recency_weight(
                    item.get("added_at"),
                    now=self.now,
                    decay_days=self.settings.decay_days,
                    min_weight=self.settings.min_weight,
                )
                artists = track.get("artists") or []
                for artist in artists:
                    if artist.get("id"):
                        self._add_weight(artist["id"], weight)

                primary = artists[0].get("name", "") if artists else ""
                if not normalize(primary) or not normalize(track.get("name")):
                    continue
                self.liked_tracks.append(LikedTrack(
                    artist=primary,
                    title=track["name"],
                    added_at=item.get("added_at"),
                    track_id=track["id"],
                ))

            offset += len(items)
            self.progress.emit(
                "liked_tracks", self.progress.stage_ratio(offset, total), f"Fetched {offset} liked tracks"
            )
            if not page.get("next") or not items:
                break

        self.progress.emit("liked_tracks", 1, f"Fetched {offset} liked tracks")
        return offset

    async def collect_followed_artists(self) -> int:
        self.progress.emit("followed_artists", 0, "Fetching followed artists…")
        after = None
        processed = 0
        total = 0

        while True:
            page = await self.library.followed_artists_page(after=after)
            items = page.get("items") or []
            total = page.get("total") or total

            for artist in items:
                if artist.get("id"):
                    self._add_weight(artist["id"], self.settings.follow_weight)

            processed += len(items)
            self.progress.emit(
                "followed_artists",
                self.progress.stage_ratio(processed, total),
                f"Fetched {processed} followed artists",
            )
            after = page.get("after")
            if not page.get("next") or not after:
                break

        self.progress.emit("followed_artists", 1, f"Fetched {processed} followed artists")
        return processed

    async def collect_top_artists(self) -> set[str]:
        """Flag top artists. A failure here is logged and treated as no top artists."""
        self.progress.emit("top_artists", 0, "Fetching top artists…")
        try:
            page = await self.library.top_artists(
                limit=self.settings.top_artists_limit,
                time_range=self.settings.top_artists_time_range,
            )
        except Exception as e:
            console.print(f"[yellow]Top artists unavailable ({e}). Continuing without them.[/yellow]")
            self.progress.emit("top_artists", 1, "Top artists unavailable")
            return self.top_artist_ids

        self.top_artist_ids = {a["id"] for a in page.get("items") or [] if a.get("id")}
        self.progress.emit("top_artists", 1, f"Fetched {len(self.top_artist_ids)} top artists")
        return self.top_artist_ids

    async def resolve_artists(self) -> tuple[list[Artist], list[GenreScore]]:
        """Fetch genres for every weighted artist in sequential batches."""
        self.progress.emit("artist_details", 0, "Resolving artist details…")
        ids = [artist_id for artist_id in self.artist_weights if artist_id]
        artists: list[Artist] = []
        processed = 0

        for chunk in chunked(ids, self.settings.artist_batch_size):
            response = await self.library.artists(chunk)
            for detail in response.get("artists") or []:
                if not detail or not detail.get("id"):
                    continue
                artists.append(Artist(
                    id=detail["id"],
                    name=detail.get("name", ""),
                    genres=tuple(normalize(g) for g in detail.get("genres") or [] if normalize(g)),
                    is_top_artist=detail["id"] in self.top_artist_ids,
                ))

            processed += len(chunk)
            self.progress.emit(
                "artist_details", processed / len(ids), f"Resolved {processed} of {len(ids)} artists"
            )

        genres = compute_genre_scores(artists, self.artist_weights)
        self.progress.emit("artist_details", 1, "Artist details fetched successfully.")
        return artists, genres

    async def build(self) -> Fingerprint:
        """Run every stage in order and return a new fingerprint.

        Failures in liked tracks, followed artists, or artist details
        propagate; nothing partial is returned.
        """
        profile = await self.library.profile()
        await self.collect_liked_tracks()
        await self.collect_followed_artists()
        await self.collect_top_artists()
        artists, genres = await self.resolve_artists()

        fingerprint = Fingerprint(
            generated_at=self.now or datetime.now(timezone.utc),
            user=UserProfile(
                id=profile.get("id", ""),
                display_name=profile.get("display_name", ""),
                email=profile.get("email", ""),
                country=profile.get("country", ""),
                profile_image=profile.get("profile_image"),
            ),
            artists=tuple(artists),
            liked_tracks=tuple(self.liked_tracks),
            genres=tuple(genres),
        )
        console.print(
            f"Fingerprint: [green]{len(self.liked_tracks)}[/green] liked tracks, "
            f"[green]{len(artists)}[/green] artists, [green]{len(genres)}[/green] genres"
        )
        self.progress.complete()
        return fingerprint
