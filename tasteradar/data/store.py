"""Persistence for fingerprints and the seen / no-video dedupe cache."""

import json
from dataclasses import dataclass, field
from datetime import timezone
from typing import Iterable

from sqlalchemy.orm import Session

from tasteradar.data.fingerprint import Fingerprint, decode_fingerprint, encode_fingerprint
from tasteradar.data.models import FingerprintRecord, SeenRecommendation
from tasteradar.errors import IncompatibleFingerprintError

DISPLAYED = "displayed"
NO_VIDEO = "no_video"


@dataclass
class DedupeCache:
    displayed: set[str] = field(default_factory=set)
    no_video: set[str] = field(default_factory=set)

    @property
    def excluded(self) -> set[str]:
        """Every MRID that must not be recommended again."""
        return self.displayed | self.no_video


def save_fingerprint(session: Session, fingerprint: Fingerprint) -> FingerprintRecord:
    """Store ``fingerprint`` wholesale, replacing any previous one for the same user."""
    record = session.get(FingerprintRecord, fingerprint.user.id)
    payload = json.dumps(encode_fingerprint(fingerprint))
    generated_at = fingerprint.generated_at
    if generated_at.tzinfo is not None:
        generated_at = generated_at.astimezone(timezone.utc).replace(tzinfo=None)

    if record is None:
        record = FingerprintRecord(
            user_id=fingerprint.user.id,
            version=fingerprint.version,
            generated_at=generated_at,
            payload=payload,
        )
        session.add(record)
    else:
        record.version = fingerprint.version
        record.generated_at = generated_at
        record.payload = payload

    session.flush()
    return record


def load_fingerprint(session: Session, user_id: str | None = None) -> Fingerprint | None:
    """Load a user's fingerprint, or the most recent one when no user is given."""
    if user_id is not None:
        record = session.get(FingerprintRecord, user_id)
    else:
        record = (
            session.query(FingerprintRecord)
            .order_by(FingerprintRecord.generated_at.desc())
            .first()
        )
    if record is None:
        return None

    try:
        payload = json.loads(record.payload)
    except json.JSONDecodeError as e:
        raise IncompatibleFingerprintError("stored payload is not valid JSON") from e
    return decode_fingerprint(payload)


def load_dedupe_cache(session: Session) -> DedupeCache:
    cache = DedupeCache()
    for mrid, kind in session.query(SeenRecommendation.mrid, SeenRecommendation.kind).all():
        if kind == NO_VIDEO:
            cache.no_video.add(mrid)
        else:
            cache.displayed.add(mrid)
    return cache


def save_dedupe_cache(
    session: Session, displayed: Iterable[str] = (), no_video: Iterable[str] = ()
) -> int:
    """Union new MRIDs into the cache. Existing entries are never removed.

    Returns count of rows added.
    """
    added = 0
    for kind, mrids in ((DISPLAYED, displayed), (NO_VIDEO, no_video)):
        wanted = {m for m in mrids if m}
        if not wanted:
            continue
        existing = {
            row.mrid
            for row in session.query(SeenRecommendation.mrid)
            .filter(SeenRecommendation.kind == kind, SeenRecommendation.mrid.in_(wanted))
            .all()
        }
        for mrid in sorted(wanted - existing):
            session.add(SeenRecommendation(mrid=mrid, kind=kind))
            added += 1

    session.flush()
    return added
