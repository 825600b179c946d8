"""
Shared parsing primitives.

Column resolution is tolerant to header variations: each canonical field
has an ordered list of accepted spellings, tried case-sensitively first and
then case-insensitively. Resolution happens per row, so the first matching
header that carries a non-empty value for that row wins.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional, Sequence

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass
class RowIssue:
    """A fatal error or a non-fatal warning attached to a spreadsheet row."""
    row_number: int
    error: str
    severity: str = SEVERITY_ERROR
    raw_data: Optional[Dict] = None

    @property
    def is_fatal(self) -> bool:
        return self.severity == SEVERITY_ERROR


@dataclass
class SheetRow:
    """One data row: 1-based spreadsheet row number and header -> value mapping."""
    row_number: int
    values: Dict[str, str]


@dataclass
class Table:
    """Parsed spreadsheet: ordered headers plus data rows."""
    headers: List[str] = field(default_factory=list)
    rows: List[SheetRow] = field(default_factory=list)


class HeaderIndex:
    """Lookup of actual headers by exact and lower-cased spelling."""

    def __init__(self, headers: Sequence[str]):
        self.headers = list(headers)
        self._exact = set(self.headers)
        self._lower: Dict[str, List[str]] = {}
        for header in self.headers:
            self._lower.setdefault(header.lower(), []).append(header)

    def candidates(self, spellings: Sequence[str]) -> List[str]:
        """Headers to try for a field, in resolution order."""
        ordered: List[str] = []
        for name in spellings:
            if name in self._exact and name not in ordered:
                ordered.append(name)
        for name in spellings:
            for header in self._lower.get(name.lower(), []):
                if header not in ordered:
                    ordered.append(header)
        return ordered

    def has_any(self, spellings: Sequence[str]) -> bool:
        return bool(self.candidates(spellings))

    def blank_headers(self) -> List[str]:
        return [h for h in self.headers if not h.strip()]


def resolve_column(
    values: Mapping[str, str],
    candidates: Sequence[str],
) -> str:
    """Return the first non-empty value among candidate headers, or ""."""
    for header in candidates:
        value = values.get(header)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def build_column_mapping(
    headers: Sequence[str],
    field_spellings: Mapping[str, Sequence[str]],
) -> Dict[str, List[str]]:
    """Map every canonical field to its ordered candidate headers."""
    index = HeaderIndex(headers)
    return {name: index.candidates(spellings) for name, spellings in field_spellings.items()}


_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def parse_date(date_str: Optional[str]) -> Optional[date]:
    """
    Parse a broadcast date.

    Handles formats like:
    - "2024-01-15" or "2024-01-15T10:30:00"
    - "2024/01/15"
    - "01/15/2024" (month first unless the first part is > 12)
    - "Jan 15, 2024" / "15 January 2024"
    - "2024-01" (first of month)

    Returns None when the value is empty or cannot be parsed.
    """
    if not date_str:
        return None

    date_str = date_str.strip()

    try:
        # ISO: YYYY-MM-DD with optional time part
        if re.match(r"^\d{4}-\d{2}-\d{2}", date_str):
            return date.fromisoformat(date_str[:10])

        match = re.match(r"^(\d{4})/(\d{1,2})/(\d{1,2})$", date_str)
        if match:
            year, month, day = map(int, match.groups())
            return date(year, month, day)

        match = re.match(r"^(\d{1,2})[/.](\d{1,2})[/.](\d{4})$", date_str)
        if match:
            a, b, year = map(int, match.groups())
            if a > 12:
                return date(year, b, a)  # DD/MM/YYYY
            return date(year, a, b)  # MM/DD/YYYY

        match = re.match(r"^(\d{4})-(\d{2})$", date_str)
        if match:
            return date(int(match.group(1)), int(match.group(2)), 1)

        lowered = date_str.lower()
        for abbr, month in _MONTHS.items():
            if abbr in lowered:
                day_match = re.search(r"\b(\d{1,2})\b", date_str)
                year_match = re.search(r"(\d{4})", date_str)
                if day_match and year_match:
                    return date(int(year_match.group()), month, int(day_match.group(1)))
                return None
    except ValueError:
        return None

    return None


def cell_to_str(value) -> str:
    """Render a spreadsheet cell as text."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()
