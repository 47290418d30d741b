"""Fingerprint data structures and the versioned persisted schema.

Version 2 stores artists and liked tracks as compact strings (see
``tasteradar.data.codec``). Version 1 is the older object format and is
still readable. Decoding dispatches on the ``version`` tag only.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from tasteradar.data.codec import (
    build_pair_key,
    decode_artist,
    decode_track,
    encode_artist,
    encode_track,
    normalize,
)
from tasteradar.errors import IncompatibleFingerprintError

CURRENT_VERSION = 2


@dataclass(frozen=True)
class LikedTrack:
    artist: str
    title: str
    added_at: Optional[str] = None
    track_id: Optional[str] = None

    @property
    def pair_key(self) -> str:
        return build_pair_key(self.artist, self.title)


@dataclass(frozen=True)
class Artist:
    name: str
    genres: tuple[str, ...] = ()
    is_top_artist: bool = False
    id: Optional[str] = None


@dataclass(frozen=True)
class GenreScore:
    name: str
    score: float


@dataclass(frozen=True)
class UserProfile:
    id: str = ""
    display_name: str = ""
    email: str = ""
    country: str = ""
    profile_image: Optional[str] = None


@dataclass(frozen=True)
class Fingerprint:
    generated_at: datetime
    user: UserProfile
    artists: tuple[Artist, ...] = ()
    liked_tracks: tuple[LikedTrack, ...] = ()
    genres: tuple[GenreScore, ...] = ()
    seen_recommendations: tuple[str, ...] = ()
    version: int = CURRENT_VERSION

    def top_genres(self, limit: int = 10) -> list[GenreScore]:
        return list(self.genres[:limit])


def encode_fingerprint(fp: Fingerprint) -> dict[str, Any]:
    """Serialize a fingerprint into the current (v2) JSON-ready payload.

    Artists without a name and liked tracks without an artist or title are
    left out; their compact strings could not be decoded again.
    """
    artists = [a for a in fp.artists if normalize(a.name)]
    liked_tracks = [t for t in fp.liked_tracks if normalize(t.artist) and normalize(t.title)]
    return {
        "version": CURRENT_VERSION,
        "generated_at": fp.generated_at.isoformat(),
        "user": {
            "id": fp.user.id,
            "display_name": fp.user.display_name,
            "email": fp.user.email,
            "country": fp.user.country,
            "profile_image": fp.user.profile_image,
        },
        "taste": {
            "artists": [encode_artist(a.name, list(a.genres), a.is_top_artist) for a in artists],
            "liked_tracks": [encode_track(t.artist, t.title, t.added_at) for t in liked_tracks],
            "genres": [{"name": g.name, "score": g.score} for g in fp.genres if normalize(g.name)],
        },
        "seen_recommendations": list(fp.seen_recommendations),
    }


def decode_fingerprint(payload: Any) -> Fingerprint:
    """Rebuild a fingerprint from a stored payload of any known version."""
    if not isinstance(payload, dict):
        raise IncompatibleFingerprintError("payload is not an object")

    version = payload.get("version")
    decoder = _DECODERS.get(version)
    if decoder is None:
        raise IncompatibleFingerprintError(f"unknown version {version!r}")

    taste = payload.get("taste")
    if not isinstance(taste, dict):
        raise IncompatibleFingerprintError("missing 'taste' section")
    for key in ("artists", "liked_tracks", "genres"):
        if not isinstance(taste.get(key, []), list):
            raise IncompatibleFingerprintError(f"'taste.{key}' is not a list")

    artists, liked_tracks = decoder(taste)
    seen = payload.get("seen_recommendations") or []
    if not isinstance(seen, list):
        raise IncompatibleFingerprintError("'seen_recommendations' is not a list")

    return Fingerprint(
        version=CURRENT_VERSION,
        generated_at=_parse_generated_at(payload.get("generated_at")),
        user=_decode_user(payload.get("user")),
        artists=tuple(artists),
        liked_tracks=tuple(liked_tracks),
        genres=tuple(_decode_genres(taste.get("genres", []))),
        seen_recommendations=tuple(str(s) for s in seen),
    )


def _decode_v1(taste: dict) -> tuple[list[Artist], list[LikedTrack]]:
    artists = []
    for entry in taste.get("artists", []):
        if not isinstance(entry, dict) or not entry.get("name"):
            raise IncompatibleFingerprintError("v1 artist entry without a name")
        genres = entry.get("genres") if isinstance(entry.get("genres"), list) else []
        artists.append(Artist(
            id=entry.get("id"),
            name=entry["name"],
            genres=tuple(normalize(g) for g in genres),
            is_top_artist=bool(entry.get("isTopArtist") or entry.get("is_top_artist")),
        ))

    tracks = []
    for entry in taste.get("liked_tracks", []):
        if not isinstance(entry, dict) or not entry.get("name"):
            raise IncompatibleFingerprintError("v1 liked track without a name")
        artist = entry.get("artist")
        if not artist:
            credited = entry.get("artists") or []
            artist = credited[0].get("name") if credited and isinstance(credited[0], dict) else None
        if not artist:
            raise IncompatibleFingerprintError(f"v1 liked track {entry['name']!r} has no artist")
        tracks.append(LikedTrack(
            artist=artist,
            title=entry["name"],
            added_at=entry.get("added_at"),
            track_id=entry.get("id"),
        ))
    return artists, tracks


def _decode_v2(taste: dict) -> tuple[list[Artist], list[LikedTrack]]:
    artists = []
    for encoded in taste.get("artists", []):
        decoded = decode_artist(encoded)
        artists.append(Artist(
            name=decoded["name"],
            genres=tuple(decoded["genres"]),
            is_top_artist=decoded["is_top_artist"],
        ))
    tracks = [LikedTrack(**decode_track(encoded)) for encoded in taste.get("liked_tracks", [])]
    return artists, tracks


_DECODERS = {1: _decode_v1, 2: _decode_v2}


def _decode_genres(entries: list) -> list[GenreScore]:
    genres = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise IncompatibleFingerprintError("genre entry without a name")
        name = normalize(entry["name"])
        if not name:
            continue
        try:
            score = float(entry.get("score") or 0.0)
        except (TypeError, ValueError):
            score = 0.0
        genres.append(GenreScore(name=name, score=score))
    return genres


def _decode_user(user: Any) -> UserProfile:
    if not isinstance(user, dict):
        return UserProfile()
    return UserProfile(
        id=user.get("id") or "",
        display_name=user.get("display_name") or user.get("displayName") or "",
        email=user.get("email") or "",
        country=user.get("country") or "",
        profile_image=user.get("profile_image") or user.get("profileImage"),
    )


def _parse_generated_at(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    return datetime.fromtimestamp(0, tz=timezone.utc)
