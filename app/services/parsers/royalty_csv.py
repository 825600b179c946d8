"""
Royalty CSV Parser

Parses royalty statements whose column names are not fixed in advance.
Tolerant to header variations; produces validated import rows with fatal
errors and non-fatal warnings kept apart. No database access.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Union

from app.services.errors import ImportValidationError
from app.services.money import DEFAULT_POLICY, LenientPolicy, parse_decimal, parse_usage_count
from app.services.parsers.base import (
    SEVERITY_WARNING,
    HeaderIndex,
    RowIssue,
    SheetRow,
    Table,
    build_column_mapping,
    parse_date,
    resolve_column,
)
from app.services.parsers.tabular import read_table

logger = logging.getLogger(__name__)


@dataclass
class CsvImportRow:
    """Validated representation of one spreadsheet row before insertion."""
    row_number: int
    title: str
    code: str = ""
    composer: str = ""
    artist_name: str = ""
    territory: str = ""
    source: str = ""
    date_raw: str = ""
    broadcast_date: Optional[date] = None
    usage_count: int = 0
    gross: Decimal = Decimal("0")
    admin_percent: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    split: Decimal = Decimal("100")
    warnings: List[str] = field(default_factory=list)


@dataclass
class CsvParseResult:
    """Result of parsing and validating an upload."""
    rows: List[CsvImportRow] = field(default_factory=list)
    errors: List[RowIssue] = field(default_factory=list)
    warnings: List[RowIssue] = field(default_factory=list)
    total_rows: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def issues(self) -> List[RowIssue]:
        return sorted(self.errors + self.warnings, key=lambda i: i.row_number)

    def raise_for_errors(self) -> None:
        """Raise ImportValidationError when any fatal error was collected."""
        if self.errors:
            first = self.errors[0]
            raise ImportValidationError(
                f"Import rejected: {len(self.errors)} row(s) failed validation",
                errors=self.errors,
                details=f"Row {first.row_number}: {first.error}",
            )


# Column name mappings, in resolution order
COLUMN_MAPPINGS: Dict[str, List[str]] = {
    "title": ["Song Title", "song title", "title", "Title", "SongTitle", "song_title"],
    "code": ["ISWC", "iswc", "Iswc", "ISWC Code", "iswc_code", "ISRC", "isrc"],
    "composer": ["Composer", "composer", "Composer Name", "Song Composer(s)", "Song Composers", "composer_name"],
    "date": ["Date", "date", "Broadcast Date", "broadcast_date", "BroadcastDate"],
    "territory": ["Territory", "territory", "Country", "country", "Region"],
    "source": ["Source", "source", "Platform", "platform", "Exploitation Source", "exploitation_source"],
    "usage_count": ["Usage Count", "usage count", "Usage Cou", "Usage", "usage", "usage_count", "UsageCount"],
    "gross": ["Gross", "gross", "Gross Amount", "gross_amount", "GrossAmount"],
    "admin_percent": ["Admin %", "admin %", "Admin Percent", "admin_percent", "AdminPercent", "Admin"],
    "net": ["Net", "net", "Net Amount", "net_amount", "NetAmount"],
    "artist": ["Artist", "artist", "Artist Name", "artist_name"],
}

AMOUNT_FIELDS = ("usage_count", "gross", "net")


def artist_mismatch(actual: str, expected: Optional[str]) -> bool:
    """True when both names are present and differ after trimming."""
    return bool(expected and actual and actual.strip() != expected.strip())


class RoyaltyCsvParser:
    """Parser for royalty statement spreadsheets."""

    def __init__(
        self,
        expected_artist_name: Optional[str] = None,
        policy: LenientPolicy = DEFAULT_POLICY,
    ):
        self.expected_artist_name = expected_artist_name
        self.policy = policy
        self._columns: Dict[str, List[str]] = {}

    def _detect_columns(self, headers: List[str]) -> None:
        """Resolve candidate headers for every canonical field."""
        self._columns = build_column_mapping(headers, COLUMN_MAPPINGS)

        # A blank header between Source and Gross usually holds usage data
        if not self._columns["usage_count"]:
            blanks = HeaderIndex(headers).blank_headers()
            if blanks:
                self._columns["usage_count"] = blanks[:1]
                logger.info("Auto-detected blank column as usage count")

    def _value(self, row: SheetRow, field_name: str) -> str:
        return resolve_column(row.values, self._columns.get(field_name, []))

    def _parse_row(self, row: SheetRow, result: CsvParseResult) -> None:
        title = self._value(row, "title")
        if not title:
            result.errors.append(RowIssue(
                row_number=row.row_number,
                error="Song title is required",
                raw_data=dict(row.values),
            ))
            return

        if not any(self._value(row, f) for f in AMOUNT_FIELDS):
            result.errors.append(RowIssue(
                row_number=row.row_number,
                error=f"No usage count, gross or net amount for \"{title}\"",
                raw_data=dict(row.values),
            ))
            return

        date_raw = self._value(row, "date")
        artist_name = self._value(row, "artist")

        parsed = CsvImportRow(
            row_number=row.row_number,
            title=title,
            code=self._value(row, "code"),
            composer=self._value(row, "composer"),
            artist_name=artist_name,
            territory=self._value(row, "territory"),
            source=self._value(row, "source"),
            date_raw=date_raw,
            broadcast_date=parse_date(date_raw),
            usage_count=parse_usage_count(self._value(row, "usage_count"), "usage_count", self.policy),
            gross=parse_decimal(self._value(row, "gross"), "gross", self.policy),
            admin_percent=parse_decimal(self._value(row, "admin_percent"), "admin_percent", self.policy),
            net=parse_decimal(self._value(row, "net"), "net", self.policy),
        )

        if date_raw and parsed.broadcast_date is None:
            logger.warning(f"Row {row.row_number}: unparseable date {date_raw!r}, stored without date")

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

    def parse_table(self, table: Table) -> CsvParseResult:
        """Validate every row of an already-read table."""
        result = CsvParseResult()

        if not table.headers:
            result.errors.append(RowIssue(row_number=0, error="Empty CSV file"))
            return result

        self._detect_columns(table.headers)
        if not self._columns["title"]:
            result.errors.append(RowIssue(
                row_number=1,
                error=f"Missing song title column. Found: {', '.join(h for h in table.headers if h)}",
            ))
            return result

        for row in table.rows:
            result.total_rows += 1
            self._parse_row(row, result)

        if not table.rows:
            result.errors.append(RowIssue(row_number=0, error="CSV file is empty or has no valid rows"))

        logger.info(
            f"Parsed {result.total_rows} royalty rows: {len(result.rows)} valid, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    def parse(self, content: Union[str, bytes], filename: Optional[str] = None) -> CsvParseResult:
        """
        Parse royalty spreadsheet content.

        Args:
            content: File content as string or bytes (CSV or XLSX)
            filename: Original filename, used to detect XLSX

        Returns:
            CsvParseResult with valid rows, fatal errors and warnings
        """
        return self.parse_table(read_table(content, filename))
