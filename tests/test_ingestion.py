"""
ingestion.py tests
==================
Track resolution, batched inserts and partial failure reporting
"""
import asyncio
import uuid
from datetime import date
from decimal import Decimal

import pytest

from app.services.errors import (
    BatchInsertError,
    ImportValidationError,
    IngestTimeoutError,
    NotFoundError,
    TrackResolutionError,
)
from app.services.ingestion import CatalogIngestionService, RoyaltyIngestionService
from app.services.parsers import CatalogCsvParser, RoyaltyCsvParser
from tests.fakes import InMemoryRoyaltyStore


def royalty_csv(rows) -> str:
    lines = ["Song Title,ISWC,Composer,Date,Territory,Source,Usage Count,Gross,Admin %,Net"]
    lines.extend(rows)
    return "\n".join(lines) + "\n"


def parse(content: str, artist_name: str = "Test Artist"):
    return RoyaltyCsvParser(expected_artist_name=artist_name).parse(content)


class SlowStore(InMemoryRoyaltyStore):

    async def find_tracks(self, artist_id, titles):
        await asyncio.sleep(1)
        return await super().find_tracks(artist_id, titles)


class TestRoyaltyIngestion:

    def setup_method(self):
        self.store = InMemoryRoyaltyStore()
        self.artist_id = self.store.add_artist("Test Artist")

    def test_creates_tracks_and_inserts_rows(self):
        content = royalty_csv([
            "Song A,T-1,Jane,2024-01-10,FR,Spotify,10,1.00,15,0.85",
            "Song A,T-1,Jane,2024-02-10,DE,Deezer,5,0.50,15,0.425",
            "Song B,,,2024-04-01,US,YouTube,3,0.30,15,0.255",
        ])
        service = RoyaltyIngestionService(self.store, batch_size=1000)
        result = asyncio.run(service.ingest(self.artist_id, parse(content)))

        assert result.inserted == 3
        assert result.tracks_created == 2
        assert result.tracks_reused == 0
        assert len(self.store.royalties) == 3

        tracks = {t.title: t for t in self.store.tracks.values()}
        assert tracks["Song A"].composer_name == "Jane"
        assert tracks["Song A"].isrc == "T-1"
        # Empty composer/ISRC are not stored
        assert tracks["Song B"].composer_name is None
        assert tracks["Song B"].isrc is None

        amounts = sorted(r.net_amount for r in self.store.royalties.values())
        assert amounts == [Decimal("0.255"), Decimal("0.425"), Decimal("0.85")]

    def test_existing_tracks_reused(self):
        content = royalty_csv(["Song A,,,2024-01-10,FR,Spotify,1,1,0,1"])
        service = RoyaltyIngestionService(self.store)
        asyncio.run(service.ingest(self.artist_id, parse(content)))
        result = asyncio.run(service.ingest(self.artist_id, parse(content)))

        assert result.tracks_created == 0
        assert result.tracks_reused == 1
        assert len(self.store.tracks) == 1
        assert len(self.store.royalties) == 2

    def test_validation_error_inserts_nothing(self):
        content = royalty_csv([
            "Song A,,,2024-01-10,FR,Spotify,1,1,0,1",
            ",,,2024-01-10,FR,Spotify,1,1,0,1",
        ])
        service = RoyaltyIngestionService(self.store)
        with pytest.raises(ImportValidationError):
            asyncio.run(service.ingest(self.artist_id, parse(content)))
        assert self.store.tracks == {}
        assert self.store.royalties == {}

    def test_unknown_artist(self):
        content = royalty_csv(["Song A,,,2024-01-10,FR,Spotify,1,1,0,1"])
        service = RoyaltyIngestionService(self.store)
        with pytest.raises(NotFoundError):
            asyncio.run(service.ingest(uuid.uuid4(), parse(content)))

    def test_rows_without_date_counted(self):
        content = royalty_csv([
            "Song A,,,,FR,Spotify,1,1,0,1",
            "Song A,,,2024-01-10,FR,Spotify,1,1,0,1",
        ])
        result = asyncio.run(RoyaltyIngestionService(self.store).ingest(self.artist_id, parse(content)))
        assert result.rows_without_date == 1
        assert result.inserted == 2

    def test_warnings_returned(self):
        content = "Song Title,Artist,Net\nSong A,Somebody,1\n"
        result = asyncio.run(RoyaltyIngestionService(self.store).ingest(self.artist_id, parse(content)))
        assert result.inserted == 1
        assert len(result.warnings) == 1

    def test_dates_are_kept(self):
        content = royalty_csv(["Song,,,2024-03-20,FR,Spotify,1,1,0,1"])
        asyncio.run(RoyaltyIngestionService(self.store).ingest(self.artist_id, parse(content)))
        record = next(iter(self.store.royalties.values()))
        assert record.broadcast_date == date(2024, 3, 20)


class TestBatchInsert:

    def setup_method(self):
        self.rows = [f"Song {i % 7},,,2024-01-{(i % 28) + 1:02d},FR,Spotify,1,0.01,0,0.01" for i in range(2500)]

    def _ingest(self, store, artist_id):
        service = RoyaltyIngestionService(store, batch_size=1000)
        return asyncio.run(service.ingest(artist_id, parse(royalty_csv(self.rows))))

    def test_all_batches_committed(self):
        store = InMemoryRoyaltyStore()
        artist_id = store.add_artist("Test Artist")
        result = self._ingest(store, artist_id)
        assert result.inserted == 2500
        assert result.batches == 3
        assert store.batch_calls == 3

    def test_third_batch_failure_reports_committed_rows(self):
        store = InMemoryRoyaltyStore(fail_on_batch=3)
        artist_id = store.add_artist("Test Artist")

        with pytest.raises(BatchInsertError) as exc:
            self._ingest(store, artist_id)

        assert exc.value.inserted == 2000
        assert exc.value.batch_number == 3
        # Earlier batches stay committed
        assert len(store.royalties) == 2000

    def test_first_batch_failure(self):
        store = InMemoryRoyaltyStore(fail_on_batch=1)
        artist_id = store.add_artist("Test Artist")
        with pytest.raises(BatchInsertError) as exc:
            self._ingest(store, artist_id)
        assert exc.value.inserted == 0
        assert store.royalties == {}


class TestTrackResolution:

    def test_failing_title_identified(self):
        store = InMemoryRoyaltyStore(fail_on_title="Broken")
        artist_id = store.add_artist("Test Artist")
        content = royalty_csv([
            "Fine,,,2024-01-10,FR,Spotify,1,1,0,1",
            "Broken,,,2024-01-10,FR,Spotify,1,1,0,1",
        ])
        with pytest.raises(TrackResolutionError) as exc:
            asyncio.run(RoyaltyIngestionService(store).ingest(artist_id, parse(content)))

        assert exc.value.title == "Broken"
        assert exc.value.message == "Failed to create track: Broken"
        assert store.royalties == {}

    def test_timeout(self):
        store = SlowStore()
        artist_id = store.add_artist("Test Artist")
        content = royalty_csv(["Song,,,2024-01-10,FR,Spotify,1,1,0,1"])
        service = RoyaltyIngestionService(store, timeout=0.05)

        with pytest.raises(IngestTimeoutError) as exc:
            asyncio.run(service.ingest(artist_id, parse(content)))

        assert exc.value.message == "Request timed out"
        assert exc.value.code == "timeout"
        assert store.royalties == {}


class TestCatalogIngestion:

    def test_creates_tracks_with_split(self):
        store = InMemoryRoyaltyStore()
        artist_id = store.add_artist("Test Artist")
        content = (
            "Song Title,Composer Name,ISRC,Artist,Split\n"
            "One,Jane,FRXXX2400001,Test Artist,50%\n"
            "Two,,,Test Artist,100\n"
        )
        parsed = CatalogCsvParser(expected_artist_name="Test Artist").parse(content)
        result = asyncio.run(CatalogIngestionService(store).ingest(artist_id, parsed))

        assert result.tracks_created == 2
        tracks = {t.title: t for t in store.tracks.values()}
        assert tracks["One"].split == "50"
        assert tracks["Two"].split == "100"
        assert tracks["One"].artist_name == "Test Artist"

        again = asyncio.run(CatalogIngestionService(store).ingest(artist_id, parsed))
        assert again.tracks_created == 0
        assert again.tracks_existing == 2
