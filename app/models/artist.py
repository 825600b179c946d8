"""Artist model for royalty tracking."""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.track import Track
    from app.models.payment_request import PaymentRequest


class Artist(Base):
    """Artist entity owning a catalog and its royalty line items."""

    __tablename__ = "artists"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    tracks: Mapped[List["Track"]] = relationship(
        "Track",
        back_populates="artist",
        cascade="all, delete-orphan",
    )
    payment_requests: Mapped[List["PaymentRequest"]] = relationship(
        "PaymentRequest",
        back_populates="artist",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Artist {self.id} name={self.name}>"
