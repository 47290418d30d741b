"""Identity keys and the compact string codec used in stored fingerprints.

Artists are stored as ``name::[genre1,genre2]`` with an optional ``::top``
suffix, liked tracks as ``artist::title`` with an optional ``::added_at``.
Every field is normalized first and then escaped, so a literal ``::``, ``,``
or bracket inside a name survives a round trip.
"""

import re
from urllib.parse import unquote

from tasteradar.errors import IncompatibleFingerprintError

DELIMITER = "::"
TOP_FLAG = "top"

_WHITESPACE = re.compile(r"\s+")
_ESCAPES = {"%": "%25", ":": "%3A", ",": "%2C", "[": "%5B", "]": "%5D"}


def normalize(value) -> str:
    """Trim, lower-case, and collapse whitespace runs to a single underscore."""
    if value is None:
        return ""
    return _WHITESPACE.sub("_", str(value).strip().lower())


def build_pair_key(artist, title) -> str:
    """Artist+title identity key (MRID)."""
    return f"{normalize(artist)}{DELIMITER}{normalize(title)}"


def escape_field(value: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def unescape_field(value: str) -> str:
    return unquote(value)


def encode_artist(name: str, genres: list[str], is_top_artist: bool = False) -> str:
    encoded_genres = ",".join(escape_field(normalize(g)) for g in genres if normalize(g))
    encoded = f"{escape_field(normalize(name))}{DELIMITER}[{encoded_genres}]"
    if is_top_artist:
        encoded += f"{DELIMITER}{TOP_FLAG}"
    return encoded


def decode_artist(encoded: str) -> dict:
    """Decode an artist string into ``{name, genres, is_top_artist}``.

    A malformed genre list or unknown flag only drops that enrichment;
    a missing name is rejected.
    """
    if not isinstance(encoded, str):
        raise IncompatibleFingerprintError(f"artist entry is {type(encoded).__name__}, expected string")

    parts = encoded.split(DELIMITER)
    name = unescape_field(parts[0])
    if not name:
        raise IncompatibleFingerprintError(f"artist entry {encoded!r} has no name")

    genres: list[str] = []
    if len(parts) > 1:
        genres_part = parts[1]
        if genres_part.startswith("[") and genres_part.endswith("]"):
            inner = genres_part[1:-1]
            genres = [unescape_field(g) for g in inner.split(",") if g]

    is_top = len(parts) > 2 and parts[2] == TOP_FLAG
    return {"name": name, "genres": genres, "is_top_artist": is_top}


def encode_track(artist: str, title: str, added_at: str | None = None) -> str:
    encoded = f"{escape_field(normalize(artist))}{DELIMITER}{escape_field(normalize(title))}"
    if added_at:
        # timestamps keep their own colons, so only the trailing field is raw
        encoded += f"{DELIMITER}{added_at}"
    return encoded


def decode_track(encoded: str) -> dict:
    """Decode a liked-track string into ``{artist, title, added_at}``."""
    if not isinstance(encoded, str):
        raise IncompatibleFingerprintError(f"track entry is {type(encoded).__name__}, expected string")

    parts = encoded.split(DELIMITER, 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise IncompatibleFingerprintError(f"track entry {encoded!r} is not 'artist::title'")

    added_at = parts[2] if len(parts) > 2 and parts[2] else None
    return {
        "artist": unescape_field(parts[0]),
        "title": unescape_field(parts[1]),
        "added_at": added_at,
    }
