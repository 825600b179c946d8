"""Pydantic schemas for imports API."""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RowIssueDetail(BaseModel):
    """A fatal error or warning attached to a spreadsheet row."""
    row_number: int
    error: str
    severity: str = "error"
    raw_data: Optional[Dict] = None

    class Config:
        from_attributes = True


class IngestResponse(BaseModel):
    """
    Result of a royalty import.

    On failure `inserted` is the number of rows committed before the error.
    """
    success: bool
    inserted: int = 0
    tracksCreated: int = 0
    tracksReused: int = 0
    rowsWithoutDate: int = 0
    error: Optional[str] = None
    details: Optional[str] = None
    code: Optional[str] = None
    errors: List[RowIssueDetail] = Field(default_factory=list)
    warnings: List[RowIssueDetail] = Field(default_factory=list)


class PreviewRow(BaseModel):
    """A parsed row as it would be imported."""
    row_number: int
    title: str
    code: str = ""
    composer: str = ""
    artist_name: str = ""
    territory: str = ""
    source: str = ""
    broadcast_date: Optional[date] = None
    usage_count: int = 0
    gross: str = "0"
    admin_percent: str = "0"
    net: str = "0"
    split: str = "100"


class PreviewResponse(BaseModel):
    """Parse and validation result without persisting anything."""
    valid: bool
    total_rows: int
    valid_rows: int
    rows_without_date: int = 0
    gross_total: str = "0.00"
    net_total: str = "0.00"
    errors: List[RowIssueDetail] = Field(default_factory=list)
    warnings: List[RowIssueDetail] = Field(default_factory=list)
    sample_rows: List[PreviewRow] = Field(
        default_factory=list,
        description="First 20 parsed rows",
    )


class CatalogImportResponse(BaseModel):
    success: bool
    tracksCreated: int = 0
    tracksExisting: int = 0
    error: Optional[str] = None
    details: Optional[str] = None
    code: Optional[str] = None
    errors: List[RowIssueDetail] = Field(default_factory=list)
    warnings: List[RowIssueDetail] = Field(default_factory=list)
