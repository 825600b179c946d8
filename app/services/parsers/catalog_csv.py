"""
Catalog CSV Parser

Parses catalog uploads (one row per track) with the headers
Song Title, Composer Name, ISRC, Artist, Split.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Union

from app.services.money import parse_decimal
from app.services.parsers.base import (
    SEVERITY_WARNING,
    HeaderIndex,
    RowIssue,
    SheetRow,
    Table,
    build_column_mapping,
    resolve_column,
)
from app.services.parsers.royalty_csv import CsvImportRow, CsvParseResult, artist_mismatch
from app.services.parsers.tabular import read_table

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ["Song Title", "Composer Name", "ISRC", "Artist", "Split"]

COLUMN_MAPPINGS: Dict[str, List[str]] = {
    "title": ["Song Title", "song title", "title", "Title", "song_title"],
    "composer": ["Composer Name", "composer name", "Composer", "composer", "composer_name"],
    "code": ["ISRC", "isrc", "ISWC", "iswc", "ISWC Code"],
    "artist": ["Artist", "artist", "Artist Name", "artist_name"],
    "split": ["Split", "split", "Split %"],
}

HUNDRED = Decimal("100")


def validate_headers(headers: List[str]) -> List[str]:
    """Return required headers missing from the file (case-insensitive)."""
    index = HeaderIndex([h.strip() for h in headers])
    return [h for h in REQUIRED_HEADERS if not index.has_any([h])]


def parse_split_percent(split: str) -> Decimal:
    """Parse "50%" / "50" into a percentage clamped to [0, 100]."""
    value = parse_decimal(split.replace("%", ""), "split")
    return min(HUNDRED, max(Decimal("0"), value))


class CatalogCsvParser:
    """Parser for catalog spreadsheets."""

    def __init__(self, expected_artist_name: Optional[str] = None):
        self.expected_artist_name = expected_artist_name
        self._columns: Dict[str, List[str]] = {}

    def _value(self, row: SheetRow, field_name: str) -> str:
        return resolve_column(row.values, self._columns.get(field_name, []))

    def parse_table(self, table: Table) -> CsvParseResult:
        result = CsvParseResult()

        missing = validate_headers(table.headers)
        if missing:
            result.errors.append(RowIssue(
                row_number=1,
                error=f"Missing required columns: {', '.join(missing)}",
            ))
            return result

        self._columns = build_column_mapping(table.headers, COLUMN_MAPPINGS)

        for row in table.rows:
            title = self._value(row, "title")
            code = self._value(row, "code")

            # Skip empty rows
            if not title and not code:
                continue
            result.total_rows += 1

            if not title:
                result.errors.append(RowIssue(
                    row_number=row.row_number,
                    error="Song title cannot be empty",
                    raw_data=dict(row.values),
                ))
                continue

            artist_name = self._value(row, "artist")
            parsed = CsvImportRow(
                row_number=row.row_number,
                title=title,
                code=code,
                composer=self._value(row, "composer"),
                artist_name=artist_name,
                split=parse_split_percent(self._value(row, "split")),
            )

            if artist_mismatch(artist_name, self.expected_artist_name):
                message = (
                    f"Artist name \"{artist_name}\" does not match selected artist "
                    f"\"{self.expected_artist_name}\" (warning only)"
                )
                parsed.warnings.append(message)
                result.warnings.append(RowIssue(
                    row_number=row.row_number,
                    error=message,
                    severity=SEVERITY_WARNING,
                ))

            result.rows.append(parsed)

        logger.info(
            f"Parsed {result.total_rows} catalog rows: {len(result.rows)} valid, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    def parse(self, content: Union[str, bytes], filename: Optional[str] = None) -> CsvParseResult:
        return self.parse_table(read_table(content, filename))
