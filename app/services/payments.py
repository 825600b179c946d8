"""
Payment request service.

Business rules:
1. available = sum(net royalties) - sum(requests pending, approved or paid)
2. A request needs available >= MIN_WITHDRAWAL_AMOUNT
3. At most one open (pending or approved) request per artist
4. The default request withdraws the whole available balance; a partial
   amount must satisfy 0 < amount <= available
5. Each request gets an invoice INV-{year}-{first 8 chars of id}
6. The admin is notified by email; a failed email does not fail the request

Rules 2 and 3 are checked under a row lock on the artist so two concurrent
requests cannot both pass.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional, Set
from uuid import UUID

from app.core.config import settings
from app.models.payment_request import COMMITTED_STATUSES, PaymentRequestStatus
from app.services.email_service import send_payment_request_email
from app.services.errors import NotFoundError, PaymentRequestError
from app.services.money import ZERO, format_amount
from app.services.repository import InvoiceRecord, PaymentRequestRecord, RoyaltyStore

logger = logging.getLogger(__name__)

# Admin workflow
ALLOWED_TRANSITIONS: Dict[PaymentRequestStatus, Set[PaymentRequestStatus]] = {
    PaymentRequestStatus.PENDING: {PaymentRequestStatus.APPROVED, PaymentRequestStatus.REJECTED},
    PaymentRequestStatus.APPROVED: {PaymentRequestStatus.PAID, PaymentRequestStatus.REJECTED},
    PaymentRequestStatus.REJECTED: set(),
    PaymentRequestStatus.PAID: set(),
}


@dataclass
class BalanceSummary:
    """Withdrawable balance of an artist and whether a request is allowed."""
    total_net: Decimal
    committed: Decimal
    available: Decimal
    minimum: Decimal
    has_open_request: bool
    reason: Optional[str] = None
    code: Optional[str] = None

    @property
    def can_request(self) -> bool:
        return self.code is None


def compute_balance(
    total_net: Decimal,
    committed: Decimal,
    has_open_request: bool = False,
    minimum: Optional[Decimal] = None,
) -> BalanceSummary:
    """Build the balance summary and the first gating rule that fails, if any."""
    minimum = settings.MIN_WITHDRAWAL_AMOUNT if minimum is None else minimum
    available = total_net - committed

    summary = BalanceSummary(
        total_net=total_net,
        committed=committed,
        available=available,
        minimum=minimum,
        has_open_request=has_open_request,
    )
    if has_open_request:
        summary.code = "request_pending"
        summary.reason = "A payment request is already pending"
    elif available < minimum:
        summary.code = "below_minimum"
        summary.reason = f"Minimum withdrawal amount is €{format_amount(minimum)}"
    return summary


def check_withdrawal(summary: BalanceSummary, amount: Optional[Decimal] = None) -> Decimal:
    """
    Validate a withdrawal and return the amount to request.

    Raises:
        PaymentRequestError: request_pending, below_minimum, invalid_amount
            or amount_exceeds_balance
    """
    if not summary.can_request:
        raise PaymentRequestError(
            summary.reason,
            details=f"Available balance: €{format_amount(summary.available)}",
            code=summary.code,
        )

    if amount is None:
        return summary.available

    if amount <= ZERO:
        raise PaymentRequestError("Amount must be greater than zero", code="invalid_amount")
    if amount > summary.available:
        raise PaymentRequestError(
            "Amount exceeds available balance",
            details=f"Requested €{format_amount(amount)}, available €{format_amount(summary.available)}",
            code="amount_exceeds_balance",
        )
    return amount


def invoice_number_for(request_id: UUID, created_at: Optional[datetime] = None) -> str:
    year = (created_at or datetime.utcnow()).year
    return f"INV-{year}-{str(request_id)[:8].upper()}"


@dataclass
class PaymentRequestOutcome:
    request: PaymentRequestRecord
    invoice: InvoiceRecord
    balance_before: BalanceSummary
    email_sent: bool = False


Notifier = Callable[..., Awaitable[bool]]


class PaymentRequestService:
    """Creates and moves payment requests through the admin workflow."""

    def __init__(self, store: RoyaltyStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier or send_payment_request_email

    async def balance(self, artist_id: UUID) -> BalanceSummary:
        total_net = await self.store.sum_net(artist_id)
        committed = await self.store.sum_payment_requests(artist_id, COMMITTED_STATUSES)
        has_open = await self.store.has_open_request(artist_id)
        return compute_balance(total_net, committed, has_open)

    async def get_balance(self, artist_id: UUID) -> BalanceSummary:
        if await self.store.get_artist(artist_id) is None:
            raise NotFoundError("Artist not found", details=str(artist_id), code="artist_not_found")
        return await self.balance(artist_id)

    async def request_payment(self, artist_id: UUID, amount: Optional[Decimal] = None) -> PaymentRequestOutcome:
        artist = await self.store.get_artist(artist_id)
        if artist is None:
            raise NotFoundError("Artist not found", details=str(artist_id), code="artist_not_found")

        try:
            await self.store.lock_artist(artist_id)
            summary = await self.balance(artist_id)
            requested = check_withdrawal(summary, amount)

            request = await self.store.create_payment_request(artist_id, requested)
            invoice_number = invoice_number_for(request.id, request.created_at)
            invoice = await self.store.create_invoice(
                artist_id=artist_id,
                payment_request_id=request.id,
                invoice_number=invoice_number,
                amount=requested,
            )
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        request.invoice_number = invoice.invoice_number
        logger.info(
            f"Payment request {request.id} created for artist {artist_id}: "
            f"€{format_amount(requested)} ({invoice.invoice_number})"
        )

        email_sent = False
        try:
            email_sent = await self.notifier(
                artist_name=artist.name,
                artist_email=artist.email,
                amount=format_amount(requested),
                invoice_number=invoice.invoice_number,
                available_balance=format_amount(summary.available),
            )
        except Exception as e:
            logger.error(f"Failed to send payment request email for {request.id}: {e}")

        return PaymentRequestOutcome(
            request=request,
            invoice=invoice,
            balance_before=summary,
            email_sent=email_sent,
        )

    async def update_status(self, request_id: UUID, status: PaymentRequestStatus) -> PaymentRequestRecord:
        request = await self.store.get_payment_request(request_id)
        if request is None:
            raise NotFoundError("Payment request not found", details=str(request_id), code="request_not_found")

        if status not in ALLOWED_TRANSITIONS[request.status]:
            raise PaymentRequestError(
                f"Cannot move a {request.status.value} request to {status.value}",
                code="invalid_transition",
            )

        updated = await self.store.set_payment_request_status(request_id, status)
        await self.store.commit()
        logger.info(f"Payment request {request_id}: {request.status.value} -> {status.value}")
        return updated
