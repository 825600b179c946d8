"""RoyaltyLineItem model: one row of usage/revenue data."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Date, DateTime, Integer, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.track import Track


class RoyaltyLineItem(Base):
    """
    Individual royalty line item.

    Amounts are stored as exact decimals and are only rounded at display
    or export time.
    """

    __tablename__ = "royalties"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Resolved by title match during ingestion
    track_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tracks.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    artist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("artists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    territory: Mapped[str] = mapped_column(String(255), nullable=True)
    exploitation_source_name: Mapped[str] = mapped_column(String(255), nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    gross_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=30, scale=20),
        default=Decimal("0"),
        nullable=False,
    )
    admin_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=30, scale=20),
        default=Decimal("0"),
        nullable=False,
    )
    net_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=30, scale=20),
        default=Decimal("0"),
        nullable=False,
    )

    broadcast_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    track: Mapped[Optional["Track"]] = relationship("Track")

    def __repr__(self) -> str:
        return f"<RoyaltyLineItem {self.id} track={self.track_id} net={self.net_amount}>"
