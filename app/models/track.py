"""Track model: canonical identity for a song in an artist's catalog."""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.artist import Artist


class Track(Base):
    """
    A song within an artist's catalog.

    (artist_id, title) is the de-duplication key: ingestion reuses an
    existing track by title instead of creating a second one.
    """

    __tablename__ = "tracks"
    __table_args__ = (
        UniqueConstraint("artist_id", "title", name="uq_tracks_artist_title"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    artist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("artists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    composer_name: Mapped[str] = mapped_column(String(500), nullable=True)

    # ISRC or ISWC code as written in the source file
    isrc: Mapped[str] = mapped_column(String(50), nullable=True)

    # Contributor name from the catalog file
    artist_name: Mapped[str] = mapped_column(String(255), nullable=True)
    split: Mapped[str] = mapped_column(String(20), default="100", nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    artist: Mapped["Artist"] = relationship("Artist", back_populates="tracks")

    def __repr__(self) -> str:
        return f"<Track {self.id} title={self.title}>"
