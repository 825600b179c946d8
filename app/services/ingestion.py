"""
Ingestion service.

Turns validated import rows into persisted tracks and royalty line items.

Flow:
1. Validation errors from the parse stage abort the import before any write.
2. Each distinct title is resolved to a track: existing tracks are reused,
   missing ones are upserted (composer/ISRC only when the file has them).
   Track creation runs under a timeout.
3. Royalty rows are inserted in fixed-size batches, one committed batch at a
   time. A failing batch stops the import and reports how many rows were
   already committed. Earlier batches are not rolled back.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from app.core.config import settings
from app.services.errors import (
    BatchInsertError,
    ImportValidationError,
    IngestTimeoutError,
    NotFoundError,
    TrackResolutionError,
)
from app.services.money import to_plain_string
from app.services.parsers.base import RowIssue
from app.services.parsers.royalty_csv import CsvImportRow, CsvParseResult
from app.services.repository import NewRoyalty, NewTrack, RoyaltyStore

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of a successful import."""
    inserted: int = 0
    tracks_created: int = 0
    tracks_reused: int = 0
    rows_without_date: int = 0
    batches: int = 0
    warnings: List[RowIssue] = field(default_factory=list)


def _first_rows_by_title(rows: Sequence[CsvImportRow]) -> Dict[str, CsvImportRow]:
    """First row for every distinct title, in file order."""
    first: Dict[str, CsvImportRow] = {}
    for row in rows:
        if row.title and row.title not in first:
            first[row.title] = row
    return first


def _new_track(row: CsvImportRow, fallback_artist_name: str, split: Optional[str] = None) -> NewTrack:
    return NewTrack(
        title=row.title,
        composer_name=row.composer.strip() or None,
        isrc=row.code.strip() or None,
        artist_name=row.artist_name or fallback_artist_name,
        split=split or "100",
    )


class TrackResolver:
    """Resolves titles to track ids for one artist, creating missing tracks."""

    def __init__(self, store: RoyaltyStore, timeout: Optional[float] = None):
        self.store = store
        self.timeout = settings.INGEST_TIMEOUT_SECONDS if timeout is None else timeout

    async def _create(self, artist_id: UUID, tracks: List[NewTrack]) -> Dict[str, UUID]:
        try:
            created = await self.store.upsert_tracks(artist_id, tracks)
            await self.store.commit()
            return created
        except Exception as e:
            await self.store.rollback()
            logger.error(f"Bulk track creation failed, retrying per title: {e}")

        # Pinpoint the title that cannot be created
        created: Dict[str, UUID] = {}
        for track in tracks:
            try:
                created.update(await self.store.upsert_tracks(artist_id, [track]))
                await self.store.commit()
            except Exception as e:
                await self.store.rollback()
                raise TrackResolutionError(track.title, details=str(e)) from e
        return created

    async def _resolve(
        self,
        artist_id: UUID,
        new_tracks: Dict[str, NewTrack],
    ) -> tuple[Dict[str, UUID], int]:
        titles = list(new_tracks)
        track_ids = await self.store.find_tracks(artist_id, titles)
        logger.info(f"Found {len(track_ids)} existing tracks out of {len(titles)} titles")

        missing = [new_tracks[t] for t in titles if t not in track_ids]
        if missing:
            logger.info(f"Creating {len(missing)} new tracks...")
            track_ids.update(await self._create(artist_id, missing))

        for title in titles:
            if title not in track_ids:
                raise TrackResolutionError(title, details="Track was not returned after creation")

        return track_ids, len(missing)

    async def resolve(
        self,
        artist_id: UUID,
        new_tracks: Dict[str, NewTrack],
    ) -> tuple[Dict[str, UUID], int]:
        """
        Return (title -> track id, number of tracks created).

        Raises:
            TrackResolutionError: a title could not be created
            IngestTimeoutError: creation exceeded the timeout
        """
        try:
            return await asyncio.wait_for(self._resolve(artist_id, new_tracks), timeout=self.timeout)
        except asyncio.TimeoutError:
            await self.store.rollback()
            logger.error(f"Track resolution timed out after {self.timeout}s for artist {artist_id}")
            raise IngestTimeoutError(self.timeout)


class RoyaltyIngestionService:
    """Persists parsed royalty statements for an artist."""

    def __init__(
        self,
        store: RoyaltyStore,
        batch_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.batch_size = batch_size or settings.INGEST_BATCH_SIZE
        self.resolver = TrackResolver(store, timeout=timeout)

    async def insert_in_batches(self, rows: Sequence[NewRoyalty]) -> int:
        """
        Insert rows in fixed-size batches, committing each one.

        Raises:
            BatchInsertError: with the count committed before the failing batch
        """
        inserted = 0
        total_batches = (len(rows) + self.batch_size - 1) // self.batch_size
        logger.info(f"Inserting {len(rows)} royalty records in {total_batches} batches of {self.batch_size}...")

        for batch_number, start in enumerate(range(0, len(rows), self.batch_size), start=1):
            batch = rows[start:start + self.batch_size]
            batch_start = time.monotonic()
            try:
                await self.store.insert_royalties(batch)
                await self.store.commit()
            except Exception as e:
                await self.store.rollback()
                logger.error(f"Batch {batch_number} failed after {inserted} rows committed: {e}")
                raise BatchInsertError(inserted=inserted, batch_number=batch_number, details=str(e)) from e

            inserted += len(batch)
            elapsed_ms = (time.monotonic() - batch_start) * 1000
            logger.info(f"Batch {batch_number}: {len(batch)} records in {elapsed_ms:.0f}ms (total: {inserted})")

        return inserted

    async def ingest(self, artist_id: UUID, parsed: CsvParseResult) -> IngestResult:
        """
        Import a validated royalty file for an artist.

        Raises:
            ImportValidationError: the file had fatal errors or no rows
            NotFoundError: unknown artist
            TrackResolutionError, IngestTimeoutError: track creation failed
            BatchInsertError: a royalty batch failed (carries the committed count)
        """
        started = time.monotonic()
        parsed.raise_for_errors()
        if not parsed.rows:
            raise ImportValidationError("CSV file is empty or has no valid rows", errors=[])

        artist = await self.store.get_artist(artist_id)
        if artist is None:
            raise NotFoundError("Artist not found", details=str(artist_id), code="artist_not_found")

        logger.info(f"Starting royalty ingestion for artist {artist_id}, {len(parsed.rows)} rows")

        first_rows = _first_rows_by_title(parsed.rows)
        new_tracks = {title: _new_track(row, artist.name) for title, row in first_rows.items()}
        track_ids, created = await self.resolver.resolve(artist_id, new_tracks)

        royalties: List[NewRoyalty] = []
        for row in parsed.rows:
            track_id = track_ids.get(row.title)
            if track_id is None:
                raise TrackResolutionError(row.title, details=f"Row {row.row_number} has no track")
            royalties.append(NewRoyalty(
                track_id=track_id,
                artist_id=artist_id,
                usage_count=row.usage_count,
                gross_amount=row.gross,
                admin_percent=row.admin_percent,
                net_amount=row.net,
                broadcast_date=row.broadcast_date,
                exploitation_source_name=row.source,
                territory=row.territory,
            ))

        inserted = await self.insert_in_batches(royalties)

        result = IngestResult(
            inserted=inserted,
            tracks_created=created,
            tracks_reused=len(track_ids) - created,
            rows_without_date=sum(1 for r in parsed.rows if r.broadcast_date is None),
            batches=(len(royalties) + self.batch_size - 1) // self.batch_size,
            warnings=list(parsed.warnings),
        )
        logger.info(
            f"Ingestion completed in {(time.monotonic() - started):.2f}s: "
            f"{result.inserted} royalties, {result.tracks_created} tracks created"
        )
        return result


@dataclass
class CatalogResult:
    tracks_created: int = 0
    tracks_existing: int = 0
    warnings: List[RowIssue] = field(default_factory=list)


class CatalogIngestionService:
    """Creates catalog tracks from a parsed catalog upload."""

    def __init__(self, store: RoyaltyStore, timeout: Optional[float] = None):
        self.store = store
        self.resolver = TrackResolver(store, timeout=timeout)

    async def ingest(self, artist_id: UUID, parsed: CsvParseResult) -> CatalogResult:
        parsed.raise_for_errors()
        if not parsed.rows:
            raise ImportValidationError("Catalog file has no tracks", errors=[])

        artist = await self.store.get_artist(artist_id)
        if artist is None:
            raise NotFoundError("Artist not found", details=str(artist_id), code="artist_not_found")

        first_rows = _first_rows_by_title(parsed.rows)
        new_tracks = {
            title: _new_track(row, artist.name, split=to_plain_string(row.split))
            for title, row in first_rows.items()
        }
        track_ids, created = await self.resolver.resolve(artist_id, new_tracks)
        logger.info(f"Catalog import for artist {artist_id}: {created} created, {len(track_ids) - created} existing")

        return CatalogResult(
            tracks_created=created,
            tracks_existing=len(track_ids) - created,
            warnings=list(parsed.warnings),
        )


__all__ = [
    "IngestResult",
    "CatalogResult",
    "TrackResolver",
    "RoyaltyIngestionService",
    "CatalogIngestionService",
]
