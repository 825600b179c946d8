"""Payment request and invoice models."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Numeric, Enum as SAEnum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.artist import Artist


class PaymentRequestStatus(str, Enum):
    """Lifecycle of a withdrawal request."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


# Requests that block a new request
OPEN_STATUSES = (PaymentRequestStatus.PENDING, PaymentRequestStatus.APPROVED)

# Requests whose amount is no longer withdrawable
COMMITTED_STATUSES = (
    PaymentRequestStatus.PENDING,
    PaymentRequestStatus.APPROVED,
    PaymentRequestStatus.PAID,
)


class PaymentRequest(Base):
    """An artist's request to withdraw royalties."""

    __tablename__ = "payment_requests"

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
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=30, scale=20),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        SAEnum(PaymentRequestStatus),
        default=PaymentRequestStatus.PENDING,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    artist: Mapped["Artist"] = relationship("Artist", back_populates="payment_requests")
    invoice: Mapped[Optional["Invoice"]] = relationship(
        "Invoice",
        back_populates="payment_request",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PaymentRequest {self.id} artist={self.artist_id} amount={self.amount} status={self.status}>"


class Invoice(Base):
    """Invoice issued for a payment request."""

    __tablename__ = "invoices"

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
    payment_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("payment_requests.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=30, scale=20),
        nullable=False,
    )
    mode_of_payment: Mapped[str] = mapped_column(String(50), default="Bank Transfer", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    file_url: Mapped[str] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    payment_request: Mapped["PaymentRequest"] = relationship(
        "PaymentRequest",
        back_populates="invoice",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} amount={self.amount}>"
