"""Spotify API wrapper using spotipy.

``SpotifyLibrary`` exposes the paginated library endpoints the fingerprint
builder consumes, one page per call, as coroutines. spotipy is synchronous,
so each request runs in a worker thread behind the Spotify rate limiter.
"""

import asyncio
import os
from typing import Any, Iterator

import spotipy
from spotipy.oauth2 import SpotifyOAuth

from tasteradar.data.db import load_env
from tasteradar.data.rate_limiter import SPOTIFY_MIN_DELAY, RateLimiter
from tasteradar.errors import AuthenticationError

SCOPES = (
    "user-library-read "
    "user-follow-read "
    "user-top-read "
    "user-read-email "
    "user-read-private"
)

REQUIRED_ENV = ("SPOTIPY_CLIENT_ID", "SPOTIPY_CLIENT_SECRET", "SPOTIPY_REDIRECT_URI")

MAX_ARTIST_BATCH = 50


def get_spotify_client() -> spotipy.Spotify:
    """Create an authenticated Spotify client using Authorization Code Flow.

    Raises AuthenticationError before any network traffic when credentials
    are not configured.
    """
    load_env()
    missing = [name for name in REQUIRED_ENV if not os.environ.get(name)]
    if missing:
        raise AuthenticationError(
            f"Missing Spotify credentials: {', '.join(missing)}. Set them in .env and log in again."
        )
    return spotipy.Spotify(
        auth_manager=SpotifyOAuth(
            client_id=os.environ["SPOTIPY_CLIENT_ID"],
            client_secret=os.environ["SPOTIPY_CLIENT_SECRET"],
            redirect_uri=os.environ["SPOTIPY_REDIRECT_URI"],
            scope=SCOPES,
        )
    )


def chunked(lst: list, size: int) -> Iterator[list]:
    """Yield successive chunks of `size` from `lst`."""
    for i in range(0, len(lst), size):
        yield lst[i : i + size]


class SpotifyLibrary:
    """Async, rate-limited view of one user's Spotify library."""

    def __init__(self, sp: spotipy.Spotify, limiter: RateLimiter | None = None):
        self.sp = sp
        self.limiter = limiter or RateLimiter(SPOTIFY_MIN_DELAY, name="spotify")

    async def _request(self, method, *args, **kwargs) -> Any:
        return await self.limiter.call(asyncio.to_thread, method, *args, **kwargs)

    async def profile(self) -> dict:
        me = await self._request(self.sp.me)
        images = me.get("images") or []
        return {
            "id": me.get("id", ""),
            "display_name": me.get("display_name") or me.get("id", ""),
            "email": me.get("email") or "",
            "country": me.get("country") or "",
            "profile_image": images[0].get("url") if images else None,
        }

    async def liked_tracks_page(self, offset: int = 0, limit: int = 50) -> dict:
        """One page of saved tracks: ``{items, next, total}``."""
        page = await self._request(self.sp.current_user_saved_tracks, limit=limit, offset=offset)
        return {
            "items": page.get("items") or [],
            "next": page.get("next"),
            "total": page.get("total"),
        }

    async def followed_artists_page(self, after: str | None = None, limit: int = 50) -> dict:
        """One cursor page of followed artists: ``{items, next, total, after}``."""
        page = await self._request(self.sp.current_user_followed_artists, limit=limit, after=after)
        artists = page.get("artists") or {}
        return {
            "items": artists.get("items") or [],
            "next": artists.get("next"),
            "total": artists.get("total"),
            "after": (artists.get("cursors") or {}).get("after"),
        }

    async def top_artists(self, limit: int = 20, time_range: str = "medium_term") -> dict:
        page = await self._request(
            self.sp.current_user_top_artists, limit=limit, time_range=time_range
        )
        return {"items": page.get("items") or []}

    async def artists(self, ids: list[str]) -> dict:
        """Artist details (including genres) for at most 50 IDs."""
        if len(ids) > MAX_ARTIST_BATCH:
            raise ValueError(f"At most {MAX_ARTIST_BATCH} artist IDs per request, got {len(ids)}")
        response = await self._request(self.sp.artists, ids)
        return {"artists": [a for a in response.get("artists") or [] if a]}
