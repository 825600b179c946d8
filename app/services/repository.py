"""
Data access for the royalty core.

Services depend on the `RoyaltyStore` protocol, never on a database
session, so column matching, decimal summation and grouping can be tested
without a live database. `SqlAlchemyRoyaltyStore` is the adapter bound at
the router boundary.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.artist import Artist
from app.models.payment_request import Invoice, PaymentRequest, PaymentRequestStatus, OPEN_STATUSES
from app.models.royalty_line_item import RoyaltyLineItem
from app.models.track import Track

logger = logging.getLogger(__name__)

# Postgres bind-parameter limits make very large IN lists fail
IN_CLAUSE_CHUNK = 1000


# ============ Records ============

@dataclass
class ArtistRecord:
    id: UUID
    name: str
    email: Optional[str] = None


@dataclass
class TrackRecord:
    id: UUID
    artist_id: UUID
    title: str
    composer_name: Optional[str] = None
    isrc: Optional[str] = None
    artist_name: Optional[str] = None
    split: str = "100"
    created_at: Optional[datetime] = None


@dataclass
class NewTrack:
    """Track to create if absent. Empty composer/ISRC are stored as NULL."""
    title: str
    composer_name: Optional[str] = None
    isrc: Optional[str] = None
    artist_name: Optional[str] = None
    split: str = "100"


@dataclass
class NewRoyalty:
    track_id: UUID
    artist_id: UUID
    usage_count: int
    gross_amount: Decimal
    admin_percent: Decimal
    net_amount: Decimal
    broadcast_date: Optional[date]
    exploitation_source_name: str
    territory: str


@dataclass
class RoyaltyRecord:
    """A royalty line item joined with its track's identity."""
    id: UUID
    artist_id: UUID
    track_id: Optional[UUID]
    title: str = ""
    composer: str = ""
    code: str = ""
    territory: str = ""
    source: str = ""
    usage_count: int = 0
    gross_amount: Decimal = Decimal("0")
    admin_percent: Decimal = Decimal("0")
    net_amount: Decimal = Decimal("0")
    broadcast_date: Optional[date] = None
    created_at: Optional[datetime] = None


@dataclass
class InvoiceRecord:
    id: UUID
    artist_id: UUID
    payment_request_id: UUID
    invoice_number: str
    amount: Decimal
    mode_of_payment: str = "Bank Transfer"
    status: str = "pending"
    created_at: Optional[datetime] = None


@dataclass
class PaymentRequestRecord:
    id: UUID
    artist_id: UUID
    amount: Decimal
    status: PaymentRequestStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    invoice_number: Optional[str] = None


# Editable royalty columns
EDITABLE_FIELDS = {
    "territory",
    "exploitation_source_name",
    "usage_count",
    "gross_amount",
    "admin_percent",
    "net_amount",
    "broadcast_date",
}


class RoyaltyStore(Protocol):
    """Persistence operations used by the ingestion, aggregation and payment services."""

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def get_artist(self, artist_id: UUID) -> Optional[ArtistRecord]: ...

    async def lock_artist(self, artist_id: UUID) -> None: ...

    async def find_tracks(self, artist_id: UUID, titles: Sequence[str]) -> Dict[str, UUID]: ...

    async def upsert_tracks(self, artist_id: UUID, tracks: Sequence[NewTrack]) -> Dict[str, UUID]: ...

    async def list_tracks(self, artist_id: UUID) -> List[TrackRecord]: ...

    async def insert_royalties(self, rows: Sequence[NewRoyalty]) -> int: ...

    async def list_royalties(self, artist_id: Optional[UUID] = None) -> List[RoyaltyRecord]: ...

    async def get_royalty(self, royalty_id: UUID) -> Optional[RoyaltyRecord]: ...

    async def update_royalty(self, royalty_id: UUID, changes: Dict) -> Optional[RoyaltyRecord]: ...

    async def delete_royalties(self, ids: Sequence[UUID]) -> int: ...

    async def delete_royalties_between(self, artist_id: UUID, start: date, end: date) -> int: ...

    async def delete_all_royalties(self, artist_id: UUID) -> int: ...

    async def sum_net(self, artist_id: UUID) -> Decimal: ...

    async def sum_payment_requests(
        self, artist_id: UUID, statuses: Iterable[PaymentRequestStatus]
    ) -> Decimal: ...

    async def has_open_request(self, artist_id: UUID) -> bool: ...

    async def create_payment_request(self, artist_id: UUID, amount: Decimal) -> PaymentRequestRecord: ...

    async def get_payment_request(self, request_id: UUID) -> Optional[PaymentRequestRecord]: ...

    async def list_payment_requests(
        self,
        artist_id: Optional[UUID] = None,
        status: Optional[PaymentRequestStatus] = None,
    ) -> List[PaymentRequestRecord]: ...

    async def set_payment_request_status(
        self, request_id: UUID, status: PaymentRequestStatus
    ) -> Optional[PaymentRequestRecord]: ...

    async def create_invoice(
        self,
        artist_id: UUID,
        payment_request_id: UUID,
        invoice_number: str,
        amount: Decimal,
    ) -> InvoiceRecord: ...


def _chunks(values: Sequence, size: int = IN_CLAUSE_CHUNK):
    for i in range(0, len(values), size):
        yield values[i:i + size]


class SqlAlchemyRoyaltyStore:
    """RoyaltyStore backed by an async SQLAlchemy session on Postgres."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # ---- Artists ----

    async def get_artist(self, artist_id: UUID) -> Optional[ArtistRecord]:
        result = await self.db.execute(select(Artist).where(Artist.id == artist_id))
        artist = result.scalar_one_or_none()
        if artist is None:
            return None
        return ArtistRecord(id=artist.id, name=artist.name, email=artist.email)

    async def lock_artist(self, artist_id: UUID) -> None:
        """Serialize concurrent payment requests for one artist."""
        await self.db.execute(
            select(Artist.id).where(Artist.id == artist_id).with_for_update()
        )

    # ---- Tracks ----

    async def find_tracks(self, artist_id: UUID, titles: Sequence[str]) -> Dict[str, UUID]:
        found: Dict[str, UUID] = {}
        for chunk in _chunks(list(titles)):
            result = await self.db.execute(
                select(Track.title, Track.id)
                .where(Track.artist_id == artist_id)
                .where(Track.title.in_(chunk))
            )
            for title, track_id in result.all():
                found[title] = track_id
        return found

    async def upsert_tracks(self, artist_id: UUID, tracks: Sequence[NewTrack]) -> Dict[str, UUID]:
        """
        Insert tracks that do not exist yet and return ids for all of them.

        Uses INSERT ... ON CONFLICT (artist_id, title) DO NOTHING, so two
        concurrent imports cannot create the same title twice.
        """
        if not tracks:
            return {}

        for chunk in _chunks(list(tracks)):
            stmt = pg_insert(Track).values([
                {
                    "artist_id": artist_id,
                    "title": t.title,
                    "composer_name": t.composer_name or None,
                    "isrc": t.isrc or None,
                    "artist_name": t.artist_name,
                    "split": t.split,
                }
                for t in chunk
            ]).on_conflict_do_nothing(index_elements=["artist_id", "title"])
            await self.db.execute(stmt)

        return await self.find_tracks(artist_id, [t.title for t in tracks])

    async def list_tracks(self, artist_id: UUID) -> List[TrackRecord]:
        result = await self.db.execute(
            select(Track).where(Track.artist_id == artist_id).order_by(Track.title)
        )
        return [
            TrackRecord(
                id=t.id,
                artist_id=t.artist_id,
                title=t.title,
                composer_name=t.composer_name,
                isrc=t.isrc,
                artist_name=t.artist_name,
                split=t.split,
                created_at=t.created_at,
            )
            for t in result.scalars().all()
        ]

    # ---- Royalties ----

    async def insert_royalties(self, rows: Sequence[NewRoyalty]) -> int:
        if not rows:
            return 0
        await self.db.execute(
            RoyaltyLineItem.__table__.insert(),
            [
                {
                    "track_id": r.track_id,
                    "artist_id": r.artist_id,
                    "usage_count": r.usage_count,
                    "gross_amount": r.gross_amount,
                    "admin_percent": r.admin_percent,
                    "net_amount": r.net_amount,
                    "broadcast_date": r.broadcast_date,
                    "exploitation_source_name": r.exploitation_source_name,
                    "territory": r.territory,
                    "created_at": datetime.utcnow(),
                }
                for r in rows
            ],
        )
        return len(rows)

    def _royalty_query(self):
        return (
            select(RoyaltyLineItem, Track.title, Track.composer_name, Track.isrc)
            .outerjoin(Track, RoyaltyLineItem.track_id == Track.id)
        )

    @staticmethod
    def _to_record(item: RoyaltyLineItem, title, composer, isrc) -> RoyaltyRecord:
        return RoyaltyRecord(
            id=item.id,
            artist_id=item.artist_id,
            track_id=item.track_id,
            title=title or "",
            composer=composer or "",
            code=isrc or "",
            territory=item.territory or "",
            source=item.exploitation_source_name or "",
            usage_count=item.usage_count or 0,
            gross_amount=item.gross_amount if item.gross_amount is not None else Decimal("0"),
            admin_percent=item.admin_percent if item.admin_percent is not None else Decimal("0"),
            net_amount=item.net_amount if item.net_amount is not None else Decimal("0"),
            broadcast_date=item.broadcast_date,
            created_at=item.created_at,
        )

    async def list_royalties(self, artist_id: Optional[UUID] = None) -> List[RoyaltyRecord]:
        query = self._royalty_query()
        if artist_id is not None:
            query = query.where(RoyaltyLineItem.artist_id == artist_id)
        query = query.order_by(RoyaltyLineItem.broadcast_date.desc(), RoyaltyLineItem.created_at)
        result = await self.db.execute(query)
        return [self._to_record(*row) for row in result.all()]

    async def get_royalty(self, royalty_id: UUID) -> Optional[RoyaltyRecord]:
        result = await self.db.execute(
            self._royalty_query().where(RoyaltyLineItem.id == royalty_id)
        )
        row = result.first()
        return self._to_record(*row) if row else None

    async def update_royalty(self, royalty_id: UUID, changes: Dict) -> Optional[RoyaltyRecord]:
        values = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        if values:
            await self.db.execute(
                update(RoyaltyLineItem).where(RoyaltyLineItem.id == royalty_id).values(**values)
            )
        return await self.get_royalty(royalty_id)

    async def delete_royalties(self, ids: Sequence[UUID]) -> int:
        deleted = 0
        for chunk in _chunks(list(ids)):
            result = await self.db.execute(
                delete(RoyaltyLineItem).where(RoyaltyLineItem.id.in_(chunk))
            )
            deleted += result.rowcount or 0
        return deleted

    async def delete_royalties_between(self, artist_id: UUID, start: date, end: date) -> int:
        result = await self.db.execute(
            delete(RoyaltyLineItem)
            .where(RoyaltyLineItem.artist_id == artist_id)
            .where(RoyaltyLineItem.broadcast_date >= start)
            .where(RoyaltyLineItem.broadcast_date <= end)
        )
        return result.rowcount or 0

    async def delete_all_royalties(self, artist_id: UUID) -> int:
        result = await self.db.execute(
            delete(RoyaltyLineItem).where(RoyaltyLineItem.artist_id == artist_id)
        )
        return result.rowcount or 0

    async def sum_net(self, artist_id: UUID) -> Decimal:
        result = await self.db.execute(
            select(func.coalesce(func.sum(RoyaltyLineItem.net_amount), 0))
            .where(RoyaltyLineItem.artist_id == artist_id)
        )
        return Decimal(str(result.scalar()))

    # ---- Payment requests ----

    @staticmethod
    def _request_record(req: PaymentRequest, invoice_number: Optional[str] = None) -> PaymentRequestRecord:
        return PaymentRequestRecord(
            id=req.id,
            artist_id=req.artist_id,
            amount=req.amount,
            status=PaymentRequestStatus(req.status),
            created_at=req.created_at,
            updated_at=req.updated_at,
            invoice_number=invoice_number,
        )

    async def sum_payment_requests(
        self, artist_id: UUID, statuses: Iterable[PaymentRequestStatus]
    ) -> Decimal:
        result = await self.db.execute(
            select(func.coalesce(func.sum(PaymentRequest.amount), 0))
            .where(PaymentRequest.artist_id == artist_id)
            .where(PaymentRequest.status.in_(list(statuses)))
        )
        return Decimal(str(result.scalar()))

    async def has_open_request(self, artist_id: UUID) -> bool:
        result = await self.db.execute(
            select(PaymentRequest.id)
            .where(PaymentRequest.artist_id == artist_id)
            .where(PaymentRequest.status.in_(OPEN_STATUSES))
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def create_payment_request(self, artist_id: UUID, amount: Decimal) -> PaymentRequestRecord:
        req = PaymentRequest(artist_id=artist_id, amount=amount, status=PaymentRequestStatus.PENDING)
        self.db.add(req)
        await self.db.flush()
        return self._request_record(req)

    async def get_payment_request(self, request_id: UUID) -> Optional[PaymentRequestRecord]:
        result = await self.db.execute(
            select(PaymentRequest, Invoice.invoice_number)
            .outerjoin(Invoice, Invoice.payment_request_id == PaymentRequest.id)
            .where(PaymentRequest.id == request_id)
        )
        row = result.first()
        return self._request_record(*row) if row else None

    async def list_payment_requests(
        self,
        artist_id: Optional[UUID] = None,
        status: Optional[PaymentRequestStatus] = None,
    ) -> List[PaymentRequestRecord]:
        query = (
            select(PaymentRequest, Invoice.invoice_number)
            .outerjoin(Invoice, Invoice.payment_request_id == PaymentRequest.id)
        )
        if artist_id is not None:
            query = query.where(PaymentRequest.artist_id == artist_id)
        if status is not None:
            query = query.where(PaymentRequest.status == status)
        result = await self.db.execute(query.order_by(PaymentRequest.created_at.desc()))
        return [self._request_record(*row) for row in result.all()]

    async def set_payment_request_status(
        self, request_id: UUID, status: PaymentRequestStatus
    ) -> Optional[PaymentRequestRecord]:
        await self.db.execute(
            update(PaymentRequest)
            .where(PaymentRequest.id == request_id)
            .values(status=status, updated_at=datetime.utcnow())
        )
        await self.db.execute(
            update(Invoice)
            .where(Invoice.payment_request_id == request_id)
            .values(status=status.value)
        )
        return await self.get_payment_request(request_id)

    async def create_invoice(
        self,
        artist_id: UUID,
        payment_request_id: UUID,
        invoice_number: str,
        amount: Decimal,
    ) -> InvoiceRecord:
        invoice = Invoice(
            artist_id=artist_id,
            payment_request_id=payment_request_id,
            invoice_number=invoice_number,
            amount=amount,
        )
        self.db.add(invoice)
        await self.db.flush()
        return InvoiceRecord(
            id=invoice.id,
            artist_id=invoice.artist_id,
            payment_request_id=invoice.payment_request_id,
            invoice_number=invoice.invoice_number,
            amount=invoice.amount,
            mode_of_payment=invoice.mode_of_payment,
            status=invoice.status,
            created_at=invoice.created_at,
        )
