"""
Imports Router

Handles royalty and catalog spreadsheet imports, either uploaded directly
or referenced by their path in Supabase Storage.
"""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, UploadFile, status

from app.core.supabase_client import download_upload
from app.routers.deps import AdminToken, Store, error_response
from app.schemas.imports import (
    CatalogImportResponse,
    IngestResponse,
    PreviewResponse,
    PreviewRow,
    RowIssueDetail,
)
from app.services.errors import ImportValidationError, NotFoundError, RoyaltyServiceError
from app.services.ingestion import CatalogIngestionService, RoyaltyIngestionService
from app.services.money import format_amount, sum_amounts, to_plain_string
from app.services.parsers import CatalogCsvParser, CsvParseResult, RoyaltyCsvParser
from app.services.parsers.base import RowIssue
from app.services.repository import ArtistRecord, RoyaltyStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])

SAMPLE_ROWS = 20


def _issue(issue: RowIssue) -> RowIssueDetail:
    return RowIssueDetail(
        row_number=issue.row_number,
        error=issue.error,
        severity=issue.severity,
        raw_data=issue.raw_data,
    )


async def _load_artist(store: RoyaltyStore, artist_id: UUID) -> ArtistRecord:
    artist = await store.get_artist(artist_id)
    if artist is None:
        raise NotFoundError("Artist not found", details=str(artist_id), code="artist_not_found")
    return artist


async def _read_source(file: Optional[UploadFile], file_path: Optional[str]) -> tuple[bytes, Optional[str]]:
    """Bytes and filename of the uploaded file or of the stored object."""
    if file is not None:
        return await file.read(), file.filename
    if file_path:
        try:
            return download_upload(file_path), file_path
        except Exception as e:
            logger.error(f"Failed to download {file_path}: {e}")
            raise NotFoundError("Uploaded file not found", details=str(e), code="file_not_found")
    raise ImportValidationError("No file provided", errors=[], details="Send a file or a file_path")


def _preview(parsed: CsvParseResult) -> PreviewResponse:
    return PreviewResponse(
        valid=parsed.is_valid,
        total_rows=parsed.total_rows,
        valid_rows=len(parsed.rows),
        rows_without_date=sum(1 for r in parsed.rows if r.broadcast_date is None),
        gross_total=format_amount(sum_amounts(r.gross for r in parsed.rows)),
        net_total=format_amount(sum_amounts(r.net for r in parsed.rows)),
        errors=[_issue(e) for e in parsed.errors],
        warnings=[_issue(w) for w in parsed.warnings],
        sample_rows=[
            PreviewRow(
                row_number=r.row_number,
                title=r.title,
                code=r.code,
                composer=r.composer,
                artist_name=r.artist_name,
                territory=r.territory,
                source=r.source,
                broadcast_date=r.broadcast_date,
                usage_count=r.usage_count,
                gross=to_plain_string(r.gross),
                admin_percent=to_plain_string(r.admin_percent),
                net=to_plain_string(r.net),
                split=to_plain_string(r.split),
            )
            for r in parsed.rows[:SAMPLE_ROWS]
        ],
    )


def _validation_extra(error: RoyaltyServiceError) -> dict:
    if isinstance(error, ImportValidationError):
        return {"errors": [_issue(e).model_dump() for e in error.errors]}
    return {}


@router.post("/royalties", response_model=IngestResponse)
async def import_royalties(
    artist_id: Annotated[UUID, Form()],
    store: Store,
    _token: AdminToken,
    file: Annotated[Optional[UploadFile], File()] = None,
    file_path: Annotated[Optional[str], Form()] = None,
):
    """
    Import a royalty statement for an artist.

    The whole file is validated first; any fatal row error rejects it
    before anything is written. On a batch failure the response reports
    the number of rows already committed.
    """
    try:
        artist = await _load_artist(store, artist_id)
        content, filename = await _read_source(file, file_path)
        parsed = RoyaltyCsvParser(expected_artist_name=artist.name).parse(content, filename)
        result = await RoyaltyIngestionService(store).ingest(artist_id, parsed)
    except RoyaltyServiceError as e:
        logger.error(f"Royalty import failed for artist {artist_id}: {e.message} ({e.details})")
        return error_response(e, inserted=getattr(e, "inserted", 0), **_validation_extra(e))

    return IngestResponse(
        success=True,
        inserted=result.inserted,
        tracksCreated=result.tracks_created,
        tracksReused=result.tracks_reused,
        rowsWithoutDate=result.rows_without_date,
        warnings=[_issue(w) for w in result.warnings],
    )


@router.post("/royalties/preview", response_model=PreviewResponse)
async def preview_royalties(
    artist_id: Annotated[UUID, Form()],
    store: Store,
    _token: AdminToken,
    file: Annotated[Optional[UploadFile], File()] = None,
    file_path: Annotated[Optional[str], Form()] = None,
):
    """Parse and validate a royalty statement without importing it."""
    try:
        artist = await _load_artist(store, artist_id)
        content, filename = await _read_source(file, file_path)
        parsed = RoyaltyCsvParser(expected_artist_name=artist.name).parse(content, filename)
    except RoyaltyServiceError as e:
        return error_response(e)

    return _preview(parsed)


@router.post("/catalog/preview", response_model=PreviewResponse)
async def preview_catalog(
    artist_id: Annotated[UUID, Form()],
    store: Store,
    _token: AdminToken,
    file: Annotated[Optional[UploadFile], File()] = None,
    file_path: Annotated[Optional[str], Form()] = None,
):
    """Parse and validate a catalog file without importing it."""
    try:
        artist = await _load_artist(store, artist_id)
        content, filename = await _read_source(file, file_path)
        parsed = CatalogCsvParser(expected_artist_name=artist.name).parse(content, filename)
    except RoyaltyServiceError as e:
        return error_response(e)

    return _preview(parsed)


@router.post("/catalog", response_model=CatalogImportResponse, status_code=status.HTTP_201_CREATED)
async def import_catalog(
    artist_id: Annotated[UUID, Form()],
    store: Store,
    _token: AdminToken,
    file: Annotated[Optional[UploadFile], File()] = None,
    file_path: Annotated[Optional[str], Form()] = None,
):
    """Create the tracks listed in a catalog file."""
    try:
        artist = await _load_artist(store, artist_id)
        content, filename = await _read_source(file, file_path)
        parsed = CatalogCsvParser(expected_artist_name=artist.name).parse(content, filename)
        result = await CatalogIngestionService(store).ingest(artist_id, parsed)
    except RoyaltyServiceError as e:
        logger.error(f"Catalog import failed for artist {artist_id}: {e.message} ({e.details})")
        return error_response(e, **_validation_extra(e))

    return CatalogImportResponse(
        success=True,
        tracksCreated=result.tracks_created,
        tracksExisting=result.tracks_existing,
        warnings=[_issue(w) for w in result.warnings],
    )
