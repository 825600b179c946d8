"""
Parser tests
============
Header matching, fatal/warning separation, catalog files, CSV/XLSX reading
"""
import csv
import io
from datetime import date
from decimal import Decimal

import pytest

from app.services.errors import ImportValidationError
from app.services.parsers import CatalogCsvParser, RoyaltyCsvParser, parse_date, read_table
from app.services.parsers.catalog_csv import parse_split_percent, validate_headers
from app.services.parsers.royalty_csv import COLUMN_MAPPINGS


def make_csv(headers, *rows) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue()


SAMPLE_VALUES = {
    "title": "My Song",
    "code": "T-123.456.789-0",
    "composer": "Jane Doe",
    "date": "2024-02-15",
    "territory": "FR",
    "source": "Spotify",
    "usage_count": "12",
    "gross": "1.50",
    "admin_percent": "15",
    "net": "1.25",
    "artist": "Band",
}

ROW_ATTRIBUTES = {
    "title": "title",
    "code": "code",
    "composer": "composer",
    "date": "broadcast_date",
    "territory": "territory",
    "source": "source",
    "usage_count": "usage_count",
    "gross": "gross",
    "admin_percent": "admin_percent",
    "net": "net",
    "artist": "artist_name",
}

SPELLINGS = [(name, spelling) for name, spellings in COLUMN_MAPPINGS.items() for spelling in spellings]


def parse_single(field_name: str, header: str):
    headers, values = [header], [SAMPLE_VALUES[field_name]]
    if field_name != "title":
        headers.append("Song Title")
        values.append(SAMPLE_VALUES["title"])
    if field_name not in ("usage_count", "gross", "net"):
        headers.append("Net")
        values.append(SAMPLE_VALUES["net"])
    result = RoyaltyCsvParser().parse(make_csv(headers, values))
    assert result.errors == []
    assert len(result.rows) == 1
    return getattr(result.rows[0], ROW_ATTRIBUTES[field_name])


class TestHeaderMatching:

    @pytest.mark.parametrize("field_name,spelling", SPELLINGS)
    def test_every_spelling_matches_primary(self, field_name, spelling):
        primary = COLUMN_MAPPINGS[field_name][0]
        assert parse_single(field_name, spelling) == parse_single(field_name, primary)

    def test_case_insensitive_fallback(self):
        content = make_csv(["SONG TITLE", "NET AMOUNT"], ["Loud", "2.00"])
        result = RoyaltyCsvParser().parse(content)
        assert result.rows[0].title == "Loud"
        assert result.rows[0].net == Decimal("2.00")

    def test_first_non_empty_header_wins(self):
        content = make_csv(["Song Title", "title", "Net"], ["", "Fallback", "1"])
        result = RoyaltyCsvParser().parse(content)
        assert result.rows[0].title == "Fallback"

    def test_blank_header_used_as_usage_count(self):
        content = make_csv(["Song Title", "Source", "", "Gross", "Net"], ["Song", "YouTube", "42", "1", "0.8"])
        result = RoyaltyCsvParser().parse(content)
        assert result.rows[0].usage_count == 42

    def test_values_trimmed_and_missing_is_empty(self):
        content = make_csv(["Song Title", "Net"], ["  Spaced  ", "1"])
        row = RoyaltyCsvParser().parse(content).rows[0]
        assert row.title == "Spaced"
        assert row.territory == ""
        assert row.broadcast_date is None


class TestFatalAndWarnings:

    def test_empty_title_is_fatal(self):
        content = make_csv(["Song Title", "Net"], ["Good", "1"], ["", "2"])
        result = RoyaltyCsvParser().parse(content)
        assert [r.title for r in result.rows] == ["Good"]
        assert len(result.errors) == 1
        assert result.errors[0].row_number == 3
        assert not result.is_valid

    def test_row_without_amounts_is_fatal(self):
        content = make_csv(["Song Title", "Territory", "Net"], ["Silent", "FR", ""])
        result = RoyaltyCsvParser().parse(content)
        assert result.rows == []
        assert "Silent" in result.errors[0].error

    def test_artist_mismatch_is_warning_and_row_kept(self):
        content = make_csv(["Song Title", "Artist", "Net"], ["Song", "Someone Else", "1"])
        result = RoyaltyCsvParser(expected_artist_name="Test Artist").parse(content)
        assert result.errors == []
        assert len(result.rows) == 1
        assert len(result.warnings) == 1
        assert result.warnings[0].row_number == 2
        assert not result.warnings[0].is_fatal
        assert "warning only" in result.rows[0].warnings[0]

    def test_matching_artist_has_no_warning(self):
        content = make_csv(["Song Title", "Artist", "Net"], ["Song", " Test Artist ", "1"])
        result = RoyaltyCsvParser(expected_artist_name="Test Artist").parse(content)
        assert result.warnings == []

    def test_missing_title_column(self):
        result = RoyaltyCsvParser().parse(make_csv(["Territory", "Net"], ["FR", "1"]))
        assert result.errors[0].row_number == 1
        assert "Missing song title column" in result.errors[0].error

    def test_empty_file(self):
        result = RoyaltyCsvParser().parse("")
        assert result.errors[0].error == "Empty CSV file"

    def test_header_only(self):
        result = RoyaltyCsvParser().parse(make_csv(["Song Title", "Net"]))
        assert not result.is_valid
        assert result.rows == []

    def test_raise_for_errors(self):
        result = RoyaltyCsvParser().parse(make_csv(["Song Title", "Net"], ["", "1"], ["", "2"]))
        with pytest.raises(ImportValidationError) as exc:
            result.raise_for_errors()
        assert len(exc.value.errors) == 2
        assert exc.value.details.startswith("Row 2")

    def test_issues_sorted_by_row(self):
        content = make_csv(["Song Title", "Artist", "Net"], ["A", "Other", "1"], ["", "", "1"])
        result = RoyaltyCsvParser(expected_artist_name="Me").parse(content)
        assert [i.row_number for i in result.issues] == [2, 3]

    def test_blank_rows_skipped_but_numbering_kept(self):
        content = "Song Title,Net\nA,1\n,\nB,2\n"
        result = RoyaltyCsvParser().parse(content)
        assert [r.row_number for r in result.rows] == [2, 4]


class TestParseDate:

    def test_formats(self):
        assert parse_date("2024-02-15") == date(2024, 2, 15)
        assert parse_date("2024-02-15T10:00:00") == date(2024, 2, 15)
        assert parse_date("2024/02/15") == date(2024, 2, 15)
        assert parse_date("02/15/2024") == date(2024, 2, 15)
        assert parse_date("15/02/2024") == date(2024, 2, 15)
        assert parse_date("2024-02") == date(2024, 2, 1)
        assert parse_date("Feb 15, 2024") == date(2024, 2, 15)

    def test_invalid(self):
        assert parse_date("") is None
        assert parse_date("someday") is None
        assert parse_date("2024-13-45") is None


class TestCatalogParser:

    HEADERS = ["Song Title", "Composer Name", "ISRC", "Artist", "Split"]

    def test_valid_catalog(self):
        content = make_csv(self.HEADERS, ["Song", "Jane", "FRXXX2400001", "Test Artist", "50%"])
        result = CatalogCsvParser(expected_artist_name="Test Artist").parse(content)
        assert result.errors == []
        row = result.rows[0]
        assert (row.title, row.composer, row.code) == ("Song", "Jane", "FRXXX2400001")
        assert row.split == Decimal("50")

    def test_missing_headers(self):
        assert validate_headers(["song title", "composer name", "isrc"]) == ["Artist", "Split"]
        result = CatalogCsvParser().parse(make_csv(["Song Title"], ["A"]))
        assert "Missing required columns" in result.errors[0].error

    def test_empty_rows_skipped_and_empty_title_fatal(self):
        content = make_csv(
            self.HEADERS,
            ["", "", "", "", ""],
            ["", "Jane", "FRXXX2400002", "", "100"],
        )
        result = CatalogCsvParser().parse(content)
        assert result.total_rows == 1
        assert result.errors[0].row_number == 3

    def test_artist_mismatch_warns(self):
        content = make_csv(self.HEADERS, ["Song", "", "", "Other", "100"])
        result = CatalogCsvParser(expected_artist_name="Test Artist").parse(content)
        assert len(result.rows) == 1
        assert len(result.warnings) == 1

    def test_split_clamped(self):
        assert parse_split_percent("150") == Decimal("100")
        assert parse_split_percent("-5%") == Decimal("0")
        assert parse_split_percent("abc") == Decimal("0")
        assert parse_split_percent("33.3 %") == Decimal("33.3")


class TestReadTable:

    def test_latin1_fallback(self):
        content = "Song Title,Net\nCaf\xe9,1\n".encode("latin-1")
        table = read_table(content, "statement.csv")
        assert table.rows[0].values["Song Title"] == "Café"

    def test_utf8_bom(self):
        content = "\ufeffSong Title,Net\nA,1\n".encode("utf-8")
        table = read_table(content)
        assert table.headers == ["Song Title", "Net"]

    def test_xlsx(self):
        openpyxl = pytest.importorskip("openpyxl")
        workbook = openpyxl.Workbook()
        sheet = workbook.active
        sheet.append(["Song Title", "Date", "Net"])
        sheet.append(["Song", date(2024, 3, 20), 1.5])
        buffer = io.BytesIO()
        workbook.save(buffer)

        result = RoyaltyCsvParser().parse(buffer.getvalue(), "statement.xlsx")
        assert result.errors == []
        assert result.rows[0].broadcast_date == date(2024, 3, 20)
        assert result.rows[0].net == Decimal("1.5")

    def test_corrupt_xlsx(self):
        with pytest.raises(ImportValidationError) as exc:
            read_table(b"not a zip at all", "statement.xlsx")
        assert exc.value.message == "Could not read file"
        assert exc.value.errors == []
        assert exc.value.details

    def test_malformed_csv(self):
        # A field past the csv module's size limit
        content = "Song Title,Net\n" + "x" * 200000 + ",1\n"
        with pytest.raises(ImportValidationError) as exc:
            RoyaltyCsvParser().parse(content, "statement.csv")
        assert exc.value.message == "Could not read file"
