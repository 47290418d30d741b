"""Exception types raised by tasteradar."""


class TasteRadarError(Exception):
    """Base class for errors surfaced to the user."""


class AuthenticationError(TasteRadarError):
    """No usable Spotify credentials; raised before any network call."""


class MissingFingerprintError(TasteRadarError):
    """No stored fingerprint, or the stored one has no genre data."""


class IncompatibleFingerprintError(TasteRadarError):
    """Persisted fingerprint uses an unknown or malformed format."""

    def __init__(self, detail: str):
        super().__init__(f"Incompatible fingerprint format ({detail}). Please regenerate it.")
        self.detail = detail


class CatalogError(TasteRadarError):
    """A catalog (MusicBrainz) request failed."""
