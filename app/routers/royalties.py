"""
Royalties Router

Quarterly views, analytics and manual corrections of royalty line items.
"""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from app.core.config import settings
from app.routers.deps import AdminToken, Store, raise_http
from app.schemas.royalties import (
    AnalyticsResponse,
    BreakdownItem,
    BulkDeleteRequest,
    DeleteResponse,
    QuarterListResponse,
    QuarterSummary,
    RoyaltyLineItemOut,
    RoyaltyUpdate,
)
from app.services.aggregation import (
    AnalyticsSummary,
    BreakdownEntry,
    QuarterGroup,
    build_analytics,
    group_by_quarter,
    quarter_date_range,
)
from app.services.errors import NotFoundError
from app.services.money import format_amount, to_plain_string
from app.services.repository import RoyaltyRecord, RoyaltyStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/royalties", tags=["royalties"])


def _line_item(item: RoyaltyRecord) -> RoyaltyLineItemOut:
    return RoyaltyLineItemOut(
        id=item.id,
        artist_id=item.artist_id,
        track_id=item.track_id,
        title=item.title,
        composer=item.composer,
        code=item.code,
        territory=item.territory,
        source=item.source,
        usage_count=item.usage_count,
        gross_amount=to_plain_string(item.gross_amount),
        admin_percent=to_plain_string(item.admin_percent),
        net_amount=to_plain_string(item.net_amount),
        broadcast_date=item.broadcast_date,
    )


def _quarter(group: QuarterGroup, limit: Optional[int], with_items: bool = True) -> QuarterSummary:
    date_range = group.date_range
    return QuarterSummary(
        key=group.key,
        label=group.label,
        short_label=group.short_label,
        year=group.year,
        quarter=group.quarter,
        start_date=date_range[0] if date_range else None,
        end_date=date_range[1] if date_range else None,
        total_gross=format_amount(group.total_gross),
        total_net=format_amount(group.total_net),
        total_usage=group.total_usage,
        item_count=group.item_count,
        truncated=with_items and group.is_truncated(limit),
        items=[_line_item(i) for i in group.visible_items(limit)] if with_items else [],
    )


def _breakdown(entry: BreakdownEntry) -> BreakdownItem:
    return BreakdownItem(
        key=entry.key,
        label=entry.label,
        revenue=format_amount(entry.revenue),
        gross=format_amount(entry.gross),
        usage_count=entry.usage_count,
        item_count=entry.item_count,
        percentage=format_amount(entry.percentage),
    )


def _analytics(summary: AnalyticsSummary, artist_id: Optional[UUID] = None) -> AnalyticsResponse:
    return AnalyticsResponse(
        artist_id=artist_id,
        total_gross=format_amount(summary.total_gross),
        total_net=format_amount(summary.total_net),
        total_usage=summary.total_usage,
        item_count=summary.item_count,
        dateless_count=summary.dateless_count,
        tracks=[_breakdown(e) for e in summary.tracks],
        territories=[_breakdown(e) for e in summary.territories],
        sources=[_breakdown(e) for e in summary.sources],
        months=[_breakdown(e) for e in summary.months],
        quarters=[_quarter(q, None, with_items=False) for q in summary.quarters],
    )


async def _require_artist(store: RoyaltyStore, artist_id: UUID) -> None:
    if await store.get_artist(artist_id) is None:
        raise_http(NotFoundError("Artist not found", details=str(artist_id), code="artist_not_found"))


def _check_quarter(quarter: int) -> None:
    if quarter not in (1, 2, 3, 4):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Quarter must be between 1 and 4")


@router.get("/analytics", response_model=AnalyticsResponse)
async def all_artists_analytics(
    store: Store,
    _token: AdminToken,
    top: int = Query(default=10, ge=1, le=100),
):
    """Breakdowns across every artist."""
    items = await store.list_royalties()
    return _analytics(build_analytics(items, top=top))


@router.get("/{artist_id}/quarters", response_model=QuarterListResponse)
async def list_quarters(
    artist_id: UUID,
    store: Store,
    _token: AdminToken,
    limit: Optional[int] = Query(default=None, ge=0, description="Line items rendered per quarter"),
    include_unassigned: Optional[bool] = None,
):
    """Quarters of an artist, most recent first. Totals always cover every line item."""
    await _require_artist(store, artist_id)
    limit = settings.QUARTER_DISPLAY_LIMIT if limit is None else limit
    if include_unassigned is None:
        include_unassigned = settings.INCLUDE_UNASSIGNED_QUARTER

    report = group_by_quarter(await store.list_royalties(artist_id), include_unassigned=include_unassigned)
    return QuarterListResponse(
        artist_id=artist_id,
        total_gross=format_amount(report.total_gross),
        total_net=format_amount(report.total_net),
        dateless_count=report.dateless_count,
        quarters=[_quarter(q, limit) for q in report.quarters],
        unassigned=_quarter(report.unassigned, limit) if report.unassigned else None,
    )


@router.get("/{artist_id}/quarters/{year}/{quarter}", response_model=QuarterSummary)
async def get_quarter(
    artist_id: UUID,
    year: Annotated[int, Path(ge=1, le=9999)],
    quarter: int,
    store: Store,
    _token: AdminToken,
    limit: Optional[int] = Query(default=None, ge=0),
):
    _check_quarter(quarter)
    await _require_artist(store, artist_id)

    group = group_by_quarter(await store.list_royalties(artist_id)).find(year, quarter)
    if group is None:
        group = QuarterGroup(year=year, quarter=quarter)
    return _quarter(group, limit)


@router.get("/{artist_id}/analytics", response_model=AnalyticsResponse)
async def artist_analytics(
    artist_id: UUID,
    store: Store,
    _token: AdminToken,
    top: int = Query(default=10, ge=1, le=100),
):
    await _require_artist(store, artist_id)
    items = await store.list_royalties(artist_id)
    return _analytics(build_analytics(items, top=top), artist_id=artist_id)


@router.patch("/record/{royalty_id}", response_model=RoyaltyLineItemOut)
async def update_royalty(
    royalty_id: UUID,
    data: RoyaltyUpdate,
    store: Store,
    _token: AdminToken,
):
    """Correct fields of a single line item."""
    if await store.get_royalty(royalty_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Royalty record not found")

    changes = data.model_dump(exclude_unset=True)
    updated = await store.update_royalty(royalty_id, changes)
    await store.commit()
    logger.info(f"Updated royalty {royalty_id}: {sorted(changes)}")
    return _line_item(updated)


@router.delete("/record/{royalty_id}", response_model=DeleteResponse)
async def delete_royalty(
    royalty_id: UUID,
    store: Store,
    _token: AdminToken,
):
    deleted = await store.delete_royalties([royalty_id])
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Royalty record not found")
    await store.commit()
    return DeleteResponse(deleted=deleted)


@router.post("/delete", response_model=DeleteResponse)
async def bulk_delete_royalties(
    data: BulkDeleteRequest,
    store: Store,
    _token: AdminToken,
):
    """Delete up to 1000 line items by id."""
    deleted = await store.delete_royalties(list(dict.fromkeys(data.ids)))
    await store.commit()
    logger.info(f"Bulk deleted {deleted} royalty records ({len(data.ids)} requested)")
    return DeleteResponse(deleted=deleted)


@router.delete("/{artist_id}/quarters/{year}/{quarter}", response_model=DeleteResponse)
async def delete_quarter(
    artist_id: UUID,
    year: Annotated[int, Path(ge=1, le=9999)],
    quarter: int,
    store: Store,
    _token: AdminToken,
):
    """Delete every line item of an artist dated within a quarter."""
    _check_quarter(quarter)
    await _require_artist(store, artist_id)

    start, end = quarter_date_range(year, quarter)
    deleted = await store.delete_royalties_between(artist_id, start, end)
    await store.commit()
    logger.info(f"Deleted {deleted} royalty records for artist {artist_id} in {year} Q{quarter}")
    return DeleteResponse(deleted=deleted)


@router.delete("/{artist_id}", response_model=DeleteResponse)
async def delete_artist_royalties(
    artist_id: UUID,
    store: Store,
    _token: AdminToken,
):
    """Delete every line item of an artist."""
    await _require_artist(store, artist_id)
    deleted = await store.delete_all_royalties(artist_id)
    await store.commit()
    logger.info(f"Deleted all {deleted} royalty records for artist {artist_id}")
    return DeleteResponse(deleted=deleted)
