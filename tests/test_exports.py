"""
exports.py tests
================
CSV escaping, precision and re-import of exported files
"""
import csv
import io
import uuid
from datetime import date
from decimal import Decimal

from app.services.exports import (
    CATALOG_EXPORT_HEADERS,
    ROYALTY_EXPORT_HEADERS,
    export_catalog_csv,
    export_filename,
    export_royalties_csv,
)
from app.services.parsers import CatalogCsvParser, RoyaltyCsvParser
from app.services.repository import RoyaltyRecord, TrackRecord

ARTIST_ID = uuid.uuid4()


def record(title, net, when=None, **kwargs) -> RoyaltyRecord:
    return RoyaltyRecord(
        id=uuid.uuid4(),
        artist_id=ARTIST_ID,
        track_id=None,
        title=title,
        net_amount=Decimal(net),
        gross_amount=Decimal(kwargs.pop("gross", net)),
        broadcast_date=when,
        **kwargs,
    )


class TestRoyaltyExport:

    def test_header_row(self):
        content = export_royalties_csv([])
        assert content == ",".join(ROYALTY_EXPORT_HEADERS) + "\r\n"

    def test_escaping(self):
        items = [record('He said "hi", twice', "1", composer="A\nB")]
        content = export_royalties_csv(items)
        assert '"He said ""hi"", twice"' in content
        assert '"A\nB"' in content

    def test_full_precision(self):
        content = export_royalties_csv([record("Song", "0.00012345678901234567", admin_percent=Decimal("15.5"))])
        row = list(csv.reader(io.StringIO(content)))[1]
        assert row[9] == "0.00012345678901234567"
        assert row[8] == "15.5"

    def test_round_trip(self):
        items = [
            record("Plain", "1.25", date(2024, 2, 15), territory="FR", source="Spotify", usage_count=10),
            record("Comma, Title", "0.001", date(2024, 4, 1), code="T-1", composer="Jane"),
            record('Quote "Title"', "3", None, usage_count=2),
            record("Zero", "0", date(2024, 5, 5)),
        ]
        parsed = RoyaltyCsvParser().parse(export_royalties_csv(items))

        assert parsed.errors == []
        assert len(parsed.rows) == len(items)
        assert [r.title for r in parsed.rows] == [i.title for i in items]
        assert [r.net for r in parsed.rows] == [i.net_amount for i in items]
        assert [r.broadcast_date for r in parsed.rows] == [i.broadcast_date for i in items]
        assert parsed.rows[1].code == "T-1"


class TestCatalogExport:

    def test_catalog_rows(self):
        tracks = [
            TrackRecord(id=uuid.uuid4(), artist_id=ARTIST_ID, title="One", composer_name="Jane", isrc="X1", split="50"),
            TrackRecord(id=uuid.uuid4(), artist_id=ARTIST_ID, title="Two"),
        ]
        content = export_catalog_csv(tracks, artist_name="Test Artist")
        rows = list(csv.reader(io.StringIO(content)))
        assert rows[0] == CATALOG_EXPORT_HEADERS
        assert rows[1] == ["One", "Jane", "X1", "Test Artist", "50"]
        assert rows[2] == ["Two", "", "", "Test Artist", "100"]

        parsed = CatalogCsvParser(expected_artist_name="Test Artist").parse(content)
        assert parsed.errors == []
        assert len(parsed.rows) == 2

    def test_filename(self):
        assert export_filename("Jane Doe/Band", "2024_Q1_royalties") == "Jane_Doe_Band_2024_Q1_royalties.csv"
