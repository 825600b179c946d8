"""
Payments Router

Artist balances, withdrawal requests and the admin approval workflow.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.models.payment_request import PaymentRequestStatus
from app.routers.deps import AdminToken, Store, raise_http
from app.schemas.payments import (
    BalanceResponse,
    PaymentRequestCreate,
    PaymentRequestOut,
    PaymentRequestResponse,
    PaymentStatusUpdate,
)
from app.services.errors import RoyaltyServiceError
from app.services.money import format_amount
from app.services.payments import BalanceSummary, PaymentRequestService
from app.services.repository import PaymentRequestRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def _balance(artist_id: UUID, summary: BalanceSummary) -> BalanceResponse:
    return BalanceResponse(
        artist_id=artist_id,
        total_net=format_amount(summary.total_net),
        committed=format_amount(summary.committed),
        available=format_amount(summary.available),
        minimum=format_amount(summary.minimum),
        has_open_request=summary.has_open_request,
        can_request=summary.can_request,
        reason=summary.reason,
        code=summary.code,
    )


def _request(record: PaymentRequestRecord) -> PaymentRequestOut:
    return PaymentRequestOut(
        id=record.id,
        artist_id=record.artist_id,
        amount=format_amount(record.amount),
        status=record.status,
        invoice_number=record.invoice_number,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.get("/{artist_id}/balance", response_model=BalanceResponse)
async def get_balance(
    artist_id: UUID,
    store: Store,
    _token: AdminToken,
):
    """Withdrawable balance and whether a request is currently allowed."""
    try:
        summary = await PaymentRequestService(store).get_balance(artist_id)
    except RoyaltyServiceError as e:
        raise_http(e)
    return _balance(artist_id, summary)


@router.post("/request", response_model=PaymentRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_payment(
    data: PaymentRequestCreate,
    store: Store,
    _token: AdminToken,
):
    """Create a withdrawal request (minimum balance and single open request enforced)."""
    try:
        outcome = await PaymentRequestService(store).request_payment(data.artist_id, data.amount)
    except RoyaltyServiceError as e:
        logger.warning(f"Payment request refused for artist {data.artist_id}: {e.message}")
        raise_http(e)

    return PaymentRequestResponse(
        request=_request(outcome.request),
        invoice_number=outcome.invoice.invoice_number,
        email_sent=outcome.email_sent,
    )


@router.get("/requests", response_model=List[PaymentRequestOut])
async def list_payment_requests(
    store: Store,
    _token: AdminToken,
    artist_id: Optional[UUID] = None,
    status_filter: Optional[PaymentRequestStatus] = Query(default=None, alias="status"),
):
    records = await store.list_payment_requests(artist_id=artist_id, status=status_filter)
    return [_request(r) for r in records]


@router.patch("/requests/{request_id}", response_model=PaymentRequestOut)
async def update_payment_request(
    request_id: UUID,
    data: PaymentStatusUpdate,
    store: Store,
    _token: AdminToken,
):
    """Approve, reject or mark a request as paid."""
    try:
        record = await PaymentRequestService(store).update_status(request_id, data.status)
    except RoyaltyServiceError as e:
        raise_http(e)
    return _request(record)
