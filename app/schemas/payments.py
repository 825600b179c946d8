"""Pydantic schemas for payments API."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from typing import Optional

from pydantic import BaseModel, Field

from app.models.payment_request import PaymentRequestStatus


class PaymentRequestCreate(BaseModel):
    """Withdrawal request. Without `amount` the whole balance is requested."""
    artist_id: UUID
    amount: Optional[Decimal] = Field(default=None, description="Partial amount, up to the available balance")


class PaymentStatusUpdate(BaseModel):
    status: PaymentRequestStatus


class BalanceResponse(BaseModel):
    artist_id: UUID
    total_net: str
    committed: str
    available: str
    minimum: str
    has_open_request: bool
    can_request: bool
    reason: Optional[str] = None
    code: Optional[str] = None


class PaymentRequestOut(BaseModel):
    id: UUID
    artist_id: UUID
    amount: str
    status: PaymentRequestStatus
    invoice_number: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentRequestResponse(BaseModel):
    success: bool = True
    request: PaymentRequestOut
    invoice_number: str
    email_sent: bool
