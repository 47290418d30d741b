"""Shared test fixtures for tasteradar tests."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tasteradar.data.fingerprint import Artist, Fingerprint, GenreScore, LikedTrack, UserProfile
from tasteradar.data.models import Base

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def session():
    """Create an in-memory SQLite database with empty tables."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    sess = SessionLocal()
    yield sess
    sess.close()


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def saved_track(track_id, name, artists, added_at=None):
    return {
        "added_at": added_at,
        "track": {
            "id": track_id,
            "name": name,
            "artists": [{"id": aid, "name": aname} for aid, aname in artists],
        },
    }


class FakeLibrary:
    """In-memory stand-in for SpotifyLibrary.

    liked_pages / followed_pages are lists of item lists, one per page.
    artist_details maps artist id -> (name, genres).
    """

    def __init__(self, liked_pages=(), followed_pages=(), top_ids=(), artist_details=None,
                 top_error=None, artists_error=None):
        self.liked_pages = list(liked_pages)
        self.followed_pages = list(followed_pages)
        self.top_ids = list(top_ids)
        self.artist_details = artist_details or {}
        self.top_error = top_error
        self.artists_error = artists_error
        self.artist_batches: list[list[str]] = []
        self.liked_calls: list[int] = []

    async def profile(self):
        return {"id": "user1", "display_name": "Test User", "email": "t@example.com",
                "country": "US", "profile_image": None}

    async def liked_tracks_page(self, offset=0, limit=50):
        self.liked_calls.append(offset)
        total = sum(len(p) for p in self.liked_pages)
        index = len(self.liked_calls) - 1
        items = self.liked_pages[index] if index < len(self.liked_pages) else []
        has_next = index + 1 < len(self.liked_pages)
        return {"items": items, "next": "next" if has_next else None, "total": total}

    async def followed_artists_page(self, after=None, limit=50):
        index = int(after) if after else 0
        items = [{"id": aid, "name": aid} for aid in self.followed_pages[index]] if self.followed_pages else []
        has_next = index + 1 < len(self.followed_pages)
        return {
            "items": items,
            "next": "next" if has_next else None,
            "total": sum(len(p) for p in self.followed_pages),
            "after": str(index + 1) if has_next else None,
        }

    async def top_artists(self, limit=20, time_range="medium_term"):
        if self.top_error:
            raise self.top_error
        return {"items": [{"id": aid, "name": aid} for aid in self.top_ids]}

    async def artists(self, ids):
        if self.artists_error:
            raise self.artists_error
        self.artist_batches.append(list(ids))
        found = []
        for aid in ids:
            if aid in self.artist_details:
                name, genres = self.artist_details[aid]
                found.append({"id": aid, "name": name, "genres": genres})
        return {"artists": found}


def recording(rid, title, artist, isrc=None, barcode=None):
    rec = {"id": rid, "title": title, "artist-credit": [{"name": artist}], "isrcs": [], "releases": []}
    if isrc:
        rec["isrcs"] = [isrc]
    if barcode:
        rec["releases"] = [{"id": f"rel-{rid}", "barcode": barcode}]
    return rec


class RepeatingCatalog:
    """Returns the same recordings on every request."""

    def __init__(self, recordings):
        self.recordings = list(recordings)
        self.calls: list[tuple[str, int, int]] = []

    async def fetch_catalog_page(self, genre, limit=10, offset=0):
        self.calls.append((genre, limit, offset))
        return {"recordings": list(self.recordings)}


class FreshCatalog:
    """Always returns `limit` never-before-seen recordings for the genre."""

    def __init__(self):
        self.counter = 0
        self.calls: list[tuple[str, int, int]] = []

    async def fetch_catalog_page(self, genre, limit=10, offset=0):
        self.calls.append((genre, limit, offset))
        recs = []
        for _ in range(limit):
            self.counter += 1
            recs.append(recording(f"mbid-{self.counter}", f"Song {self.counter}",
                                  f"{genre} Artist {self.counter}"))
        return {"recordings": recs}


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fingerprint():
    """Fingerprint with rock/jazz genres and two liked tracks."""
    return Fingerprint(
        generated_at=NOW,
        user=UserProfile(id="user1", display_name="Test User"),
        artists=(
            Artist(name="daft_punk", genres=("french_house", "electronic"), is_top_artist=True),
            Artist(name="miles_davis", genres=("jazz",)),
        ),
        liked_tracks=(
            LikedTrack(artist="Daft Punk", title="One More Time", added_at=iso(NOW - timedelta(days=3))),
            LikedTrack(artist="Miles Davis", title="So What"),
        ),
        genres=(GenreScore("rock", 0.6), GenreScore("jazz", 0.4)),
    )
