"""MusicBrainz recording search, used as the discovery catalog.

MusicBrainz allows roughly one request per second per client, so every
request goes through a shared RateLimiter.
"""

from typing import Any

import httpx

from tasteradar.data.rate_limiter import MUSICBRAINZ_MIN_DELAY, RateLimiter
from tasteradar.errors import CatalogError

MUSICBRAINZ_BASE_URL = "https://musicbrainz.org/ws/2"
DEFAULT_USER_AGENT = "tasteradar/0.1 ( https://github.com/tasteradar/tasteradar )"
DEFAULT_TIMEOUT = 15.0


def genre_query(genre: str) -> str:
    """Lucene tag query for a normalized genre label (``indie_rock`` -> ``tag:"indie rock"``)."""
    label = genre.replace("_", " ").strip().replace('"', '\\"')
    return f'tag:"{label}"'


class MusicBrainzCatalog:
    def __init__(
        self,
        client: httpx.AsyncClient,
        limiter: RateLimiter | None = None,
        base_url: str = MUSICBRAINZ_BASE_URL,
    ):
        self.client = client
        self.limiter = limiter or RateLimiter(MUSICBRAINZ_MIN_DELAY, name="musicbrainz")
        self.base_url = base_url.rstrip("/")

    async def fetch_catalog_page(self, genre: str, limit: int = 10, offset: int = 0) -> dict[str, Any]:
        """One page of recordings tagged with ``genre``: ``{recordings: [...]}``."""
        if not genre or not genre.strip():
            raise ValueError("genre is required")

        params = {
            "query": genre_query(genre),
            "limit": str(max(1, limit)),
            "offset": str(max(0, offset)),
            "fmt": "json",
        }
        try:
            resp = await self.limiter.call(
                self.client.get, f"{self.base_url}/recording", params=params
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise CatalogError(
                f"MusicBrainz request for {genre!r} failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise CatalogError(f"Failed to reach MusicBrainz for {genre!r}: {e}") from e
        except ValueError as e:
            raise CatalogError(f"MusicBrainz returned invalid JSON for {genre!r}") from e

        return {"recordings": data.get("recordings") or []}

    async def aclose(self):
        await self.client.aclose()


def get_musicbrainz_catalog(
    config: dict | None = None, limiter: RateLimiter | None = None
) -> MusicBrainzCatalog:
    """Build a catalog client from the ``musicbrainz`` / ``rate_limits`` config sections."""
    config = config or {}
    mb_cfg = config.get("musicbrainz", {})
    delay = config.get("rate_limits", {}).get("musicbrainz", MUSICBRAINZ_MIN_DELAY)

    client = httpx.AsyncClient(
        headers={
            "User-Agent": mb_cfg.get("user_agent", DEFAULT_USER_AGENT),
            "Accept": "application/json",
        },
        timeout=mb_cfg.get("timeout", DEFAULT_TIMEOUT),
    )
    return MusicBrainzCatalog(
        client,
        limiter=limiter or RateLimiter(delay, name="musicbrainz"),
        base_url=mb_cfg.get("base_url", MUSICBRAINZ_BASE_URL),
    )
