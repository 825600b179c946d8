"""
Exports Router

CSV exports of royalty line items and artist catalogs.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from app.routers.deps import AdminToken, Store
from app.services.aggregation import quarter_of
from app.services.exports import export_catalog_csv, export_filename, export_royalties_csv

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exports", tags=["exports"])


def _csv_response(content: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([content.encode("utf-8")]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{artist_id}/royalties.csv")
async def export_artist_royalties(
    artist_id: UUID,
    store: Store,
    _token: AdminToken,
    year: Optional[int] = None,
    quarter: Optional[int] = Query(default=None, ge=1, le=4),
):
    """Export an artist's line items, optionally restricted to a year or a quarter."""
    if quarter is not None and year is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="quarter requires year")

    artist = await store.get_artist(artist_id)
    if artist is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artist not found")

    items = await store.list_royalties(artist_id)
    suffix = "royalties"
    if year is not None:
        items = [i for i in items if i.broadcast_date and i.broadcast_date.year == year]
        suffix = f"{year}_royalties"
    if quarter is not None:
        items = [i for i in items if quarter_of(i.broadcast_date) == (year, quarter)]
        suffix = f"{year}_Q{quarter}_royalties"

    logger.info(f"Exporting {len(items)} royalty records for artist {artist_id}")
    return _csv_response(export_royalties_csv(items), export_filename(artist.name, suffix))


@router.get("/{artist_id}/catalog.csv")
async def export_artist_catalog(
    artist_id: UUID,
    store: Store,
    _token: AdminToken,
):
    artist = await store.get_artist(artist_id)
    if artist is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artist not found")

    tracks = await store.list_tracks(artist_id)
    return _csv_response(export_catalog_csv(tracks, artist.name), export_filename(artist.name, "catalog"))
