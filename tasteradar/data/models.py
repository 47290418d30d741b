"""SQLAlchemy 2.0 ORM models for tasteradar."""

from datetime import datetime

from sqlalchemy import Index, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class FingerprintRecord(Base):
    """Latest taste fingerprint per Spotify user, stored as a versioned JSON payload."""

    __tablename__ = "fingerprints"

    user_id: Mapped[str] = mapped_column(String(200), primary_key=True)
    version: Mapped[int] = mapped_column()
    generated_at: Mapped[datetime] = mapped_column(index=True)
    payload: Mapped[str] = mapped_column(Text)  # JSON, see data/fingerprint.py

    def __repr__(self) -> str:
        return f"<FingerprintRecord {self.user_id} v{self.version} @ {self.generated_at}>"


class SeenRecommendation(Base):
    """Dedupe cache entry: an MRID that was displayed or had no playable video."""

    __tablename__ = "seen_recommendations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    mrid: Mapped[str] = mapped_column(String(1000))
    kind: Mapped[str] = mapped_column(String(20))  # "displayed" | "no_video"
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("mrid", "kind", name="uq_seen_mrid_kind"),
        Index("ix_seen_kind", "kind"),
    )

    def __repr__(self) -> str:
        return f"<SeenRecommendation {self.kind}: {self.mrid}>"
